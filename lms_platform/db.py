from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from lms_platform.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # sqlite:///path style or a bare file path.
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Question marks inside quoted literals are left alone. Doubled quotes ('' or "")
    toggle the state twice, so escaped quotes need no special case. Every literal
    percent sign is doubled, quoted or not.
    """
    out: List[str] = []
    quote: str | None = None
    for ch in sql:
        if ch == "%":
            out.append("%%")
        elif quote is not None:
            if ch == quote:
                quote = None
            out.append(ch)
        elif ch in ("'", '"'):
            quote = ch
            out.append(ch)
        elif ch == "?":
            out.append("%s")
        else:
            out.append(ch)
    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cur, name)


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        return PGCursor(self._conn.cursor()).execute(sql, params)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _open(dsn: str) -> Any:
    if _detect_dialect(dsn) == "postgres":
        try:
            import psycopg2
            import psycopg2.extras
        except Exception as e:
            raise RuntimeError(
                "Postgres selected but psycopg2 is not installed. "
                "Install psycopg2-binary and try again."
            ) from e
        # RealDictCursor makes fetchone()/fetchall() rows act like dicts.
        return PGConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))

    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open a connection; commit on success, roll back on error.

    - SQLite: WAL + NORMAL sync, rows are sqlite3.Row.
    - Postgres: psycopg2 behind `PGConnection`, rows are dicts.
    """
    conn = _open((db_dsn or "").strip())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables and run lightweight migrations."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        ddl = get_schema_sql(dialect)
        if dialect == "postgres":
            # Serialize schema DDL across processes.
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                for stmt in (s.strip() for s in ddl.split(";")):
                    if stmt:
                        conn.execute(stmt)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            conn.executescript(ddl)

        _migrate(conn, dialect=dialect)


def _has_column(conn: Any, table: str, col: str, *, dialect: str) -> bool:
    if dialect == "postgres":
        r = conn.execute(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema='public'
              AND table_name=?
              AND column_name=?
            LIMIT 1
            """,
            (table, col),
        ).fetchone()
        return r is not None

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r["name"] == col for r in rows)


def _migrate(conn: Any, *, dialect: str) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    # users: columns added after the first release
    user_cols_to_add = [
        ("avatar_public_id", "TEXT NOT NULL DEFAULT ''"),
        ("avatar_secure_url", "TEXT NOT NULL DEFAULT ''"),
        ("forgot_password_token", "TEXT"),
        ("forgot_password_expiry", "TEXT"),
        ("last_login_at", "TEXT"),
    ]
    for col, ctype in user_cols_to_add:
        if not _has_column(conn, "users", col, dialect=dialect):
            conn.execute(f"ALTER TABLE users ADD COLUMN {col} {ctype}")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_reset_token ON users (forgot_password_token)")

    for col in ("lecture_public_id", "lecture_secure_url"):
        if not _has_column(conn, "lectures", col, dialect=dialect):
            conn.execute(f"ALTER TABLE lectures ADD COLUMN {col} TEXT NOT NULL DEFAULT ''")


def count(conn: Any, sql: str, params: Sequence[Any] | None = None) -> int:
    """Run a `SELECT COUNT(*) AS n ...` query and return n."""
    row = conn.execute(sql, tuple(params or ())).fetchone()
    return int(row["n"] or 0) if row is not None else 0
