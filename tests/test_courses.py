import pytest

from lms_platform.catalog import crud as catalog
from lms_platform.db import connect


COURSE_FORM = {
    "title": "Python Basics",
    "description": "An introduction to Python. " * 10,
    "category": "Programming",
    "price": "499",
    "discount": "10",
    "language": "English",
    "skills": "python, testing",
}

LECTURE_FORM = {
    "title": "Variables and types",
    "description": "How names bind to objects in Python programs.",
}


@pytest.fixture
def course(client, admin_headers):
    r = client.post(
        "/api/v1/course/create",
        data=COURSE_FORM,
        files={"thumbnail": ("cover.png", b"png", "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 201
    return r.json()["course"]


def test_list_courses_is_public(client, course):
    r = client.get("/api/v1/course/")
    assert r.status_code == 200
    assert [c["course_id"] for c in r.json()["courses"]] == [course["course_id"]]


def test_create_course(course):
    assert course["title"] == "Python Basics"
    assert course["price"] == 499.0
    assert course["created_by"] == "admin@example.com"
    assert course["number_of_lectures"] == 0
    assert course["thumbnail"]["public_id"] == "lms/image_1"


def test_create_course_requires_admin(client, make_user, auth_headers):
    u = make_user("alice01", "alice@example.com")
    r = client.post("/api/v1/course/create", data=COURSE_FORM, headers=auth_headers(u["user_id"]))
    assert r.status_code == 403
    assert client.get("/api/v1/course/").json()["courses"] == []


@pytest.mark.parametrize(
    "field,value",
    [
        ("title", "Py"),
        ("description", "too short"),
        ("skills", "py"),
        ("price", "free"),
    ],
)
def test_create_course_validates_fields(client, admin_headers, field, value):
    r = client.post("/api/v1/course/create", data={**COURSE_FORM, field: value}, headers=admin_headers)
    assert r.status_code == 400
    assert field in r.json()["message"]


def test_create_course_survives_thumbnail_failure(client, admin_headers, media):
    media.fail_uploads = True
    r = client.post(
        "/api/v1/course/create",
        data=COURSE_FORM,
        files={"thumbnail": ("cover.png", b"png", "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["course"]["thumbnail"] == {"public_id": "", "secure_url": ""}


def test_update_course_replaces_thumbnail(client, admin_headers, media, course):
    cid = course["course_id"]
    r = client.put(
        f"/api/v1/course/update/{cid}",
        data={"title": "Python Fundamentals"},
        files={"thumbnail": ("new.png", b"new", "image/png")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    updated = r.json()["course"]
    assert updated["title"] == "Python Fundamentals"
    assert updated["description"] == course["description"]
    assert updated["thumbnail"]["public_id"] == "lms/image_2"
    assert media.destroyed == ["lms/image_1"]


def test_update_missing_course(client, admin_headers):
    r = client.put("/api/v1/course/update/999", data={"title": "Python Fundamentals"}, headers=admin_headers)
    assert r.status_code == 404


def test_lecture_lifecycle_keeps_count_in_sync(client, cfg, admin_headers, media, course):
    cid = course["course_id"]

    r = client.post(
        f"/api/v1/course/create/lectures/{cid}",
        data=LECTURE_FORM,
        files={"lecture": ("intro.mp4", b"video", "video/mp4")},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["course"]["number_of_lectures"] == 1
    lecture = r.json()["lectures"][0]
    assert lecture["lecture"]["public_id"] == "lms/video_2"
    assert media.uploads[-1]["resource_type"] == "video"

    r = client.post(f"/api/v1/course/create/lectures/{cid}", data=LECTURE_FORM, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["course"]["number_of_lectures"] == 2

    lid = lecture["lecture_id"]
    r = client.put(
        f"/api/v1/course/update/lectures/{cid}/{lid}",
        data={"title": "Names and values"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["lecture"]["title"] == "Names and values"

    r = client.delete(f"/api/v1/course/remove/lectures/{cid}/{lid}", headers=admin_headers)
    assert r.status_code == 200
    assert "lms/video_2" in media.destroyed

    with connect(cfg.DB_DSN) as conn:
        assert catalog.get_course(conn, cid)["number_of_lectures"] == 1
        assert len(catalog.list_lectures(conn, cid)) == 1


def test_lecture_validation(client, admin_headers, course):
    r = client.post(
        f"/api/v1/course/create/lectures/{course['course_id']}",
        data={"title": "Short", "description": LECTURE_FORM["description"]},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_lecture_on_missing_course(client, admin_headers):
    r = client.post("/api/v1/course/create/lectures/999", data=LECTURE_FORM, headers=admin_headers)
    assert r.status_code == 404


def test_delete_course_removes_lectures_and_media(client, cfg, admin_headers, media, course):
    cid = course["course_id"]
    client.post(
        f"/api/v1/course/create/lectures/{cid}",
        data=LECTURE_FORM,
        files={"lecture": ("intro.mp4", b"video", "video/mp4")},
        headers=admin_headers,
    )

    r = client.delete(f"/api/v1/course/remove/{cid}", headers=admin_headers)
    assert r.status_code == 200
    assert sorted(media.destroyed) == ["lms/image_1", "lms/video_2"]

    with connect(cfg.DB_DSN) as conn:
        assert catalog.get_course(conn, cid) is None
        assert catalog.list_lectures(conn, cid) == []

    assert client.delete(f"/api/v1/course/remove/{cid}", headers=admin_headers).status_code == 404


def test_clean_course_fields_partial_skips_missing():
    assert catalog.clean_course_fields({"title": "  Django  "}, partial=True) == {"title": "Django"}
    with pytest.raises(ValueError):
        catalog.clean_course_fields({"title": "Django"}, partial=False)
