from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from lms_platform.api.deps import get_cfg, get_media
from lms_platform.auth import require_active_subscription, require_admin
from lms_platform.catalog import crud
from lms_platform.config import Config
from lms_platform.db import connect
from lms_platform.errors import NotFoundError, UpstreamServiceError, ValidationError


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter(prefix="/course", tags=["course"])


def _upload_or_log(media: Any, file: Optional[UploadFile], *, what: str, resource_type: str = "image") -> Optional[Dict[str, str]]:
    """Upload if a file was sent. Failures are logged and swallowed (record keeps empty media)."""
    if file is None or not file.filename:
        return None
    try:
        return media.upload(file.file, resource_type=resource_type)
    except UpstreamServiceError as e:
        _debug(f"{what} upload failed: {e.message}; keeping empty media")
        return None


def _destroy_or_log(media: Any, public_id: str, *, what: str, resource_type: str = "image") -> None:
    if not public_id:
        return
    try:
        media.destroy(public_id, resource_type=resource_type)
    except UpstreamServiceError:
        _debug(f"orphaned {what} media {public_id}")


def _load_course(conn: Any, course_id: int) -> Any:
    row = crud.get_course(conn, course_id)
    if row is None:
        raise NotFoundError("Course does not exist")
    return row


# -----------------------------
# Courses
# -----------------------------


@router.get("/")
def get_course_list(cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        courses = crud.list_courses(conn)
    return {"success": True, "message": "All courses", "courses": courses}


@router.get("/{course_id}")
def get_lectures_list(
    course_id: int,
    _subscriber: Dict[str, Any] = Depends(require_active_subscription),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        course = _load_course(conn, course_id)
        lectures = crud.list_lectures(conn, course_id)
    return {
        "success": True,
        "message": "Course lectures fetched successfully",
        "course": crud.public_course(course),
        "lectures": lectures,
    }


@router.post("/create", status_code=201)
def create_course(
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    price: str = Form(""),
    discount: str = Form(""),
    language: str = Form(""),
    skills: str = Form(""),
    created_by: str = Form("", alias="createdBy"),
    thumbnail: Optional[UploadFile] = File(default=None),
    admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    """Create a course, then upload its thumbnail, then attach it.

    The three steps are not atomic: an upload failure leaves the course
    without a thumbnail.
    """
    try:
        fields = crud.clean_course_fields(
            {
                "title": title,
                "description": description,
                "category": category,
                "price": price,
                "discount": discount,
                "language": language,
                "skills": skills,
                "created_by": created_by or str(admin.get("email") or ""),
            },
            partial=False,
        )
    except ValueError as e:
        raise ValidationError(str(e))

    with connect(cfg.DB_DSN) as conn:
        course_id = crud.create_course(conn, fields)

    uploaded = _upload_or_log(media, thumbnail, what=f"course {course_id} thumbnail")
    with connect(cfg.DB_DSN) as conn:
        if uploaded:
            crud.set_course_thumbnail(conn, course_id, **uploaded)
        course = crud.get_course(conn, course_id)

    _debug(f"course created course_id={course_id}")
    return {"success": True, "message": "Course created successfully", "course": crud.public_course(course)}


@router.put("/update/{course_id}")
def update_course(
    course_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    discount: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    skills: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(default=None),
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    try:
        fields = crud.clean_course_fields(
            {
                "title": title,
                "description": description,
                "category": category,
                "price": price,
                "discount": discount,
                "language": language,
                "skills": skills,
            },
            partial=True,
        )
    except ValueError as e:
        raise ValidationError(str(e))

    with connect(cfg.DB_DSN) as conn:
        existing = _load_course(conn, course_id)
        crud.update_course(conn, course_id, fields)

    if thumbnail is not None and thumbnail.filename:
        uploaded = media.upload(thumbnail.file)
        with connect(cfg.DB_DSN) as conn:
            crud.set_course_thumbnail(conn, course_id, **uploaded)
        _destroy_or_log(media, existing["thumbnail_public_id"], what=f"course {course_id} thumbnail")

    with connect(cfg.DB_DSN) as conn:
        course = crud.get_course(conn, course_id)
    return {"success": True, "message": "Course updated successfully", "course": crud.public_course(course)}


@router.delete("/remove/{course_id}")
def delete_course(
    course_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        course = _load_course(conn, course_id)
        lecture_media = crud.delete_course(conn, course_id)

    _destroy_or_log(media, course["thumbnail_public_id"], what=f"course {course_id} thumbnail")
    for public_id in lecture_media:
        _destroy_or_log(media, public_id, what=f"course {course_id} lecture", resource_type="video")

    _debug(f"course deleted course_id={course_id}")
    return {"success": True, "message": "Course deleted successfully"}


# -----------------------------
# Lectures
# -----------------------------


@router.post("/create/lectures/{course_id}", status_code=201)
def create_lecture(
    course_id: int,
    title: str = Form(""),
    description: str = Form(""),
    lecture: Optional[UploadFile] = File(default=None),
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    try:
        fields = crud.clean_lecture_fields({"title": title, "description": description}, partial=False)
    except ValueError as e:
        raise ValidationError(str(e))

    with connect(cfg.DB_DSN) as conn:
        _load_course(conn, course_id)
        lecture_id = crud.add_lecture(conn, course_id, fields)

    uploaded = _upload_or_log(media, lecture, what=f"lecture {lecture_id} video", resource_type="video")
    with connect(cfg.DB_DSN) as conn:
        if uploaded:
            crud.update_lecture(
                conn,
                lecture_id,
                {"lecture_public_id": uploaded["public_id"], "lecture_secure_url": uploaded["secure_url"]},
            )
        course = crud.get_course(conn, course_id)
        lectures = crud.list_lectures(conn, course_id)

    return {
        "success": True,
        "message": "Lecture added successfully",
        "course": crud.public_course(course),
        "lectures": lectures,
    }


@router.put("/update/lectures/{course_id}/{lecture_id}")
def update_lecture(
    course_id: int,
    lecture_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    lecture: Optional[UploadFile] = File(default=None),
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    try:
        fields = crud.clean_lecture_fields({"title": title, "description": description}, partial=True)
    except ValueError as e:
        raise ValidationError(str(e))

    with connect(cfg.DB_DSN) as conn:
        _load_course(conn, course_id)
        existing = crud.get_lecture(conn, course_id, lecture_id)
        if existing is None:
            raise NotFoundError("Lecture does not exist")
        crud.update_lecture(conn, lecture_id, fields)

    if lecture is not None and lecture.filename:
        uploaded = media.upload(lecture.file, resource_type="video")
        with connect(cfg.DB_DSN) as conn:
            crud.update_lecture(
                conn,
                lecture_id,
                {"lecture_public_id": uploaded["public_id"], "lecture_secure_url": uploaded["secure_url"]},
            )
        _destroy_or_log(media, existing["lecture_public_id"], what=f"lecture {lecture_id}", resource_type="video")

    with connect(cfg.DB_DSN) as conn:
        row = crud.get_lecture(conn, course_id, lecture_id)
    return {"success": True, "message": "Lecture updated successfully", "lecture": crud.public_lecture(row)}


@router.delete("/remove/lectures/{course_id}/{lecture_id}")
def delete_lecture(
    course_id: int,
    lecture_id: int,
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        _load_course(conn, course_id)
        existing = crud.get_lecture(conn, course_id, lecture_id)
        if existing is None:
            raise NotFoundError("Lecture does not exist")
        crud.delete_lecture(conn, course_id, lecture_id)

    _destroy_or_log(media, existing["lecture_public_id"], what=f"lecture {lecture_id}", resource_type="video")
    return {"success": True, "message": "Lecture deleted successfully"}
