"""Create a user in the DB.

Usage:
  python scripts/create_user.py --user-name alice01 --full-name 'Alice Admin' \
      --email alice@example.com --password '...' --role ADMIN

NOTE: This is intended for local/dev. It is the only way to create an ADMIN
besides the empty-table bootstrap.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from lms_platform.config import load_config
from lms_platform.db import init_db, connect
from lms_platform.auth.crud import create_user


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--user-name", required=True)
    ap.add_argument("--full-name", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=["USER", "ADMIN"], default="USER")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        u = create_user(
            conn,
            user_name=args.user_name,
            full_name=args.full_name,
            email=args.email,
            password=args.password,
            role=args.role,
        )

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
