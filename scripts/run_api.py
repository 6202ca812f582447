import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn

from lms_platform.config import _env_bool


def main() -> None:
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "5000"))
    # Auto-reload is for local development only.
    reload = _env_bool("API_RELOAD", False) is True
    uvicorn.run("lms_platform.api.server:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
