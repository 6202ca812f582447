from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from lms_platform.util.time import utcnow_iso


# (min, max) lengths, inclusive
COURSE_LIMITS: Dict[str, Tuple[int, int]] = {
    "title": (5, 59),
    "description": (200, 500),
    "skills": (6, 100),
}
LECTURE_LIMITS: Dict[str, Tuple[int, int]] = {
    "title": (8, 100),
    "description": (30, 400),
}

COURSE_TEXT_FIELDS = ("title", "description", "category", "language", "skills", "created_by")
COURSE_NUMBER_FIELDS = ("price", "discount")


def _check_lengths(values: Dict[str, Any], limits: Dict[str, Tuple[int, int]]) -> None:
    for field, (lo, hi) in limits.items():
        v = values.get(field)
        if v is None:
            continue
        n = len(str(v))
        if n < lo:
            raise ValueError(f"{field} must be at least {lo} characters")
        if n > hi:
            raise ValueError(f"{field} must be at most {hi} characters")


def clean_course_fields(values: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    """Trim + validate course fields. Raises ValueError(<human message>).

    With partial=True, missing fields are skipped (update); otherwise all are required.
    """
    out: Dict[str, Any] = {}
    for field in COURSE_TEXT_FIELDS:
        raw = values.get(field)
        if raw is None:
            if not partial:
                raise ValueError(f"{field} is required")
            continue
        v = str(raw).strip()
        if not v:
            raise ValueError(f"{field} is required")
        out[field] = v

    for field in COURSE_NUMBER_FIELDS:
        raw = values.get(field)
        if raw is None or raw == "":
            if not partial:
                raise ValueError(f"{field} is required")
            continue
        try:
            num = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"{field} must be a number")
        if num < 0:
            raise ValueError(f"{field} must not be negative")
        out[field] = num

    _check_lengths(out, COURSE_LIMITS)
    return out


def clean_lecture_fields(values: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field in LECTURE_LIMITS:
        raw = values.get(field)
        if raw is None:
            if not partial:
                raise ValueError(f"{field} is required")
            continue
        v = str(raw).strip()
        if not v:
            raise ValueError(f"{field} is required")
        out[field] = v
    _check_lengths(out, LECTURE_LIMITS)
    return out


def public_course(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d["thumbnail"] = {
        "public_id": d.pop("thumbnail_public_id", "") or "",
        "secure_url": d.pop("thumbnail_secure_url", "") or "",
    }
    return d


def public_lecture(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d["lecture"] = {
        "public_id": d.pop("lecture_public_id", "") or "",
        "secure_url": d.pop("lecture_secure_url", "") or "",
    }
    return d


def _update_row(conn: Any, table: str, key: str, key_value: int, fields: Dict[str, Any]) -> None:
    if not fields:
        return
    items = list(fields.items()) + [("updated_at", utcnow_iso())]
    sets = ", ".join([f"{k}=?" for k, _ in items])
    params = [v for _, v in items] + [int(key_value)]
    conn.execute(f"UPDATE {table} SET {sets} WHERE {key}=?", params)


# -----------------------------
# Courses
# -----------------------------


def list_courses(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM courses ORDER BY course_id DESC").fetchall()
    return [public_course(r) for r in rows]


def get_course(conn: Any, course_id: int) -> Optional[Any]:
    return conn.execute("SELECT * FROM courses WHERE course_id=?", (int(course_id),)).fetchone()


def create_course(conn: Any, fields: Dict[str, Any]) -> int:
    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO courses (title, description, category, price, discount, language, skills,
                             created_by, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?,?)
        RETURNING course_id
        """,
        (
            fields["title"],
            fields["description"],
            fields["category"],
            fields["price"],
            fields["discount"],
            fields["language"],
            fields["skills"],
            fields["created_by"],
            now,
            now,
        ),
    ).fetchone()
    return int(row["course_id"])


def update_course(conn: Any, course_id: int, fields: Dict[str, Any]) -> None:
    _update_row(conn, "courses", "course_id", course_id, fields)


def set_course_thumbnail(conn: Any, course_id: int, *, public_id: str, secure_url: str) -> None:
    _update_row(
        conn,
        "courses",
        "course_id",
        course_id,
        {"thumbnail_public_id": public_id, "thumbnail_secure_url": secure_url},
    )


def delete_course(conn: Any, course_id: int) -> List[str]:
    """Delete a course and its lectures. Returns the lecture media ids left behind."""
    rows = conn.execute(
        "SELECT lecture_public_id FROM lectures WHERE course_id=?",
        (int(course_id),),
    ).fetchall()
    conn.execute("DELETE FROM lectures WHERE course_id=?", (int(course_id),))
    conn.execute("DELETE FROM courses WHERE course_id=?", (int(course_id),))
    return [str(r["lecture_public_id"]) for r in rows if r["lecture_public_id"]]


# -----------------------------
# Lectures
# -----------------------------


def list_lectures(conn: Any, course_id: int) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM lectures WHERE course_id=? ORDER BY lecture_id",
        (int(course_id),),
    ).fetchall()
    return [public_lecture(r) for r in rows]


def get_lecture(conn: Any, course_id: int, lecture_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM lectures WHERE course_id=? AND lecture_id=?",
        (int(course_id), int(lecture_id)),
    ).fetchone()


def _sync_lecture_count(conn: Any, course_id: int) -> None:
    conn.execute(
        """
        UPDATE courses
        SET number_of_lectures=(SELECT COUNT(*) FROM lectures WHERE course_id=?), updated_at=?
        WHERE course_id=?
        """,
        (int(course_id), utcnow_iso(), int(course_id)),
    )


def add_lecture(
    conn: Any,
    course_id: int,
    fields: Dict[str, Any],
    *,
    public_id: str = "",
    secure_url: str = "",
) -> int:
    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO lectures (course_id, title, description, lecture_public_id, lecture_secure_url,
                              created_at, updated_at)
        VALUES (?,?,?,?,?,?,?)
        RETURNING lecture_id
        """,
        (int(course_id), fields["title"], fields["description"], public_id, secure_url, now, now),
    ).fetchone()
    _sync_lecture_count(conn, course_id)
    return int(row["lecture_id"])


def update_lecture(conn: Any, lecture_id: int, fields: Dict[str, Any]) -> None:
    _update_row(conn, "lectures", "lecture_id", lecture_id, fields)


def delete_lecture(conn: Any, course_id: int, lecture_id: int) -> None:
    conn.execute(
        "DELETE FROM lectures WHERE course_id=? AND lecture_id=?",
        (int(course_id), int(lecture_id)),
    )
    _sync_lecture_count(conn, course_id)
