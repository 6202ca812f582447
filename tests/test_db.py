import sqlite3

import pytest

from lms_platform.config import _env_bool
from lms_platform.db import _detect_dialect, _qmark_to_pct, connect, count, init_db


def test_detect_dialect():
    assert _detect_dialect("postgresql://u:p@localhost/lms") == "postgres"
    assert _detect_dialect("postgres://localhost/lms") == "postgres"
    assert _detect_dialect("sqlite:///tmp/lms.sqlite") == "sqlite"
    assert _detect_dialect("./lms.sqlite") == "sqlite"


def test_qmark_to_pct_leaves_literals_alone():
    sql = "SELECT * FROM users WHERE email=? AND full_name LIKE '50%?' AND role=?"
    assert _qmark_to_pct(sql) == "SELECT * FROM users WHERE email=%s AND full_name LIKE '50%%?' AND role=%s"


def test_init_db_is_repeatable(tmp_path):
    dsn = str(tmp_path / "lms.sqlite")
    init_db(dsn)
    init_db(dsn)
    with connect(dsn) as conn:
        assert count(conn, "SELECT COUNT(*) AS n FROM users") == 0


def test_init_db_migrates_old_users_table(tmp_path):
    dsn = str(tmp_path / "old.sqlite")
    raw = sqlite3.connect(dsn)
    raw.execute(
        """
        CREATE TABLE users (
          user_id INTEGER PRIMARY KEY AUTOINCREMENT,
          user_name TEXT NOT NULL UNIQUE,
          full_name TEXT NOT NULL,
          email TEXT NOT NULL UNIQUE,
          password_hash TEXT NOT NULL,
          role TEXT NOT NULL DEFAULT 'USER',
          subscription_id TEXT,
          subscription_status TEXT,
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL
        )
        """
    )
    raw.commit()
    raw.close()

    init_db(dsn)

    with connect(dsn) as conn:
        cols = {r["name"] for r in conn.execute("PRAGMA table_info(users)").fetchall()}
    assert {"avatar_public_id", "forgot_password_token", "last_login_at"} <= cols


def test_connect_rolls_back_on_error(tmp_path):
    dsn = str(tmp_path / "lms.sqlite")
    init_db(dsn)
    with pytest.raises(RuntimeError):
        with connect(dsn) as conn:
            conn.execute(
                "INSERT INTO users (user_name, full_name, email, password_hash, created_at, updated_at) "
                "VALUES (?,?,?,?,?,?)",
                ("temp0001", "Temp User", "temp@example.com", "x", "2024-01-01", "2024-01-01"),
            )
            raise RuntimeError("boom")
    with connect(dsn) as conn:
        assert count(conn, "SELECT COUNT(*) AS n FROM users") == 0


def test_env_bool(monkeypatch):
    monkeypatch.setenv("LMS_FLAG", "yes")
    assert _env_bool("LMS_FLAG") is True
    monkeypatch.setenv("LMS_FLAG", "off")
    assert _env_bool("LMS_FLAG", True) is False
    monkeypatch.setenv("LMS_FLAG", "maybe")
    assert _env_bool("LMS_FLAG", True) is True
    monkeypatch.delenv("LMS_FLAG")
    assert _env_bool("LMS_FLAG") is None


def test_init_db_adds_only_missing_lecture_columns(tmp_path):
    dsn = str(tmp_path / "old_lectures.sqlite")
    raw = sqlite3.connect(dsn)
    raw.execute(
        """
        CREATE TABLE lectures (
          lecture_id INTEGER PRIMARY KEY AUTOINCREMENT,
          course_id INTEGER NOT NULL,
          title TEXT NOT NULL,
          description TEXT NOT NULL,
          lecture_public_id TEXT NOT NULL DEFAULT '',
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL
        )
        """
    )
    raw.commit()
    raw.close()

    init_db(dsn)

    with connect(dsn) as conn:
        cols = [r["name"] for r in conn.execute("PRAGMA table_info(lectures)").fetchall()]
    assert cols.count("lecture_public_id") == 1
    assert "lecture_secure_url" in cols
