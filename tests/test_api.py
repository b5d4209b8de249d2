import asyncio
import io

import pytest
from fastapi import UploadFile
from storage3.utils import StorageException

from app.database import SessionLocal
from app.errors import ValidationError
from app.main import _read_upload
from app.models import models


def _upload(client, title="DBMS Unit 1", semester=3, content_type="application/pdf", tags="sql,exam"):
    return client.post(
        "/api/resources",
        data={
            "title": title,
            "semester": str(semester),
            "subject": "Database Management System",
            "category": "notes",
            "description": "Normalization and ER diagrams",
            "tags": tags,
        },
        files={"file": ("unit1.pdf", b"%PDF-1.4 fake", content_type)},
    )


def _make_admin(client):
    user_id = client.get("/api/auth/me").json()["user"]["id"]
    session = SessionLocal()
    try:
        session.get(models.User, user_id).role = "admin"
        session.commit()
    finally:
        session.close()


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Test Library Backend Running"

    health = client.get("/health").json()
    assert health["database"] == "connected"
    assert "resources" in health["collections"]


def test_options(client):
    options = client.get("/api/options").json()
    assert [s["value"] for s in options["semesters"]] == [1, 2, 3, 4, 5, 6]
    assert options["maxFileSize"] == 100 * 1024 * 1024
    assert options["subjectsBySemester"]["1"][0] == "C Programming"


def test_me_without_session(client):
    assert client.get("/api/auth/me").json() == {"state": "anonymous", "user": None, "notifications": []}


def test_register_sets_session_cookie(signed_in):
    me = signed_in.get("/api/auth/me").json()

    assert me["state"] == "authenticated"
    assert me["user"]["email"] == "asha@example.edu"
    assert signed_in.cookies.get("session_token")


def test_register_validation_errors(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "A", "email": "bad", "password": "short", "confirmPassword": "other", "semester": 9},
    )

    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"name", "email", "password", "confirmPassword", "semester"}


def test_login_logout_cycle(signed_in):
    assert signed_in.post("/api/auth/logout").json()["state"] == "anonymous"
    assert signed_in.get("/api/auth/me").json()["state"] == "anonymous"

    response = signed_in.post("/api/auth/login", json={"email": "asha@example.edu", "password": "Secret123"})
    assert response.status_code == 200
    assert response.json()["notifications"][-1]["message"] == "Welcome back!"
    assert signed_in.get("/api/auth/me").json()["state"] == "authenticated"


def test_login_with_bad_password(signed_in):
    signed_in.post("/api/auth/logout")
    response = signed_in.post("/api/auth/login", json={"email": "asha@example.edu", "password": "Wrong1234"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication failed. Please log in again."


def test_bearer_token_is_accepted(client):
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Ravi",
            "email": "ravi@example.edu",
            "password": "Secret123",
            "confirmPassword": "Secret123",
            "semester": 1,
        },
    )
    token = response.cookies.get("session_token")
    client.cookies.clear()

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["user"]["name"] == "Ravi"


def test_update_profile(signed_in):
    response = signed_in.patch("/api/auth/profile", json={"semester": 5})

    assert response.status_code == 200
    assert response.json()["user"]["semester"] == 5


def test_recovery_endpoints(signed_in, mailer):
    assert signed_in.post("/api/auth/recovery", json={"email": "asha@example.edu"}).status_code == 200
    user_id, secret = mailer.last_link_params()

    weak = signed_in.put("/api/auth/recovery", json={"userId": user_id, "secret": secret, "password": "weak"})
    assert weak.status_code == 422

    ok = signed_in.put("/api/auth/recovery", json={"userId": user_id, "secret": secret, "password": "Brand1New"})
    assert ok.status_code == 200


def test_verification_endpoints(signed_in, mailer):
    assert signed_in.post("/api/auth/verification").status_code == 200
    user_id, secret = mailer.last_link_params()
    assert signed_in.put("/api/auth/verification", json={"userId": user_id, "secret": secret}).status_code == 200


def test_upload_requires_login(client):
    response = _upload(client)
    assert response.status_code == 401


def test_upload_list_search_and_download(signed_in, bucket):
    created = _upload(signed_in)
    assert created.status_code == 201
    resource = created.json()
    assert resource["tags"] == ["exam", "sql"]
    assert resource["file_id"] in bucket.files

    listing = signed_in.get("/api/resources", params={"semester": 3, "tags": ["exam"]}).json()
    assert listing["total"] == 1
    assert listing["page"] == 1
    assert listing["resources"][0]["id"] == resource["id"]

    search = signed_in.get("/api/resources/search", params={"q": "dbms", "offset": 40}).json()
    assert search["page"] == 1
    assert search["resources"][0]["title"] == "DBMS Unit 1"

    download = signed_in.get(f"/api/resources/{resource['id']}/download").json()
    assert download["url"].endswith("?download=")
    assert signed_in.get(f"/api/resources/{resource['id']}").json()["download_count"] == 1
    assert len(signed_in.get("/api/me/downloads").json()) == 1

    by_semester = signed_in.get("/api/semesters/3/resources").json()
    assert [r["id"] for r in by_semester] == [resource["id"]]

    preview = signed_in.get(f"/api/resources/{resource['id']}/preview", params={"width": 300}).json()
    assert "width=300" in preview["preview"]


def test_upload_rejects_unsupported_type(signed_in, bucket):
    response = _upload(signed_in, content_type="application/x-msdownload")

    assert response.status_code == 422
    assert "type" in response.json()["errors"]["file"]
    assert bucket.files == {}


def test_list_rejects_zero_limit(client):
    response = client.get("/api/resources", params={"limit": 0})
    assert response.status_code == 422


def test_bookmark_endpoints(signed_in):
    resource_id = _upload(signed_in).json()["id"]
    url = f"/api/resources/{resource_id}/bookmark"

    assert signed_in.get(url).json() == {"bookmarked": False}
    signed_in.put(url)
    signed_in.put(url)
    assert signed_in.get(url).json() == {"bookmarked": True}
    assert len(signed_in.get("/api/me/bookmarks").json()) == 1

    signed_in.delete(url)
    assert signed_in.get(url).json() == {"bookmarked": False}


def test_edit_and_delete_by_owner(signed_in, bucket):
    resource = _upload(signed_in).json()

    patched = signed_in.patch(f"/api/resources/{resource['id']}", json={"title": "DBMS Unit One", "rating": 4})
    assert patched.json()["title"] == "DBMS Unit One"

    assert signed_in.delete(f"/api/resources/{resource['id']}").json() == {"ok": True}
    assert signed_in.get(f"/api/resources/{resource['id']}").status_code == 404
    assert resource["file_id"] not in bucket.files


def test_other_students_cannot_edit(signed_in):
    resource = _upload(signed_in).json()
    signed_in.post("/api/auth/logout")
    signed_in.post(
        "/api/auth/register",
        json={
            "name": "Ravi",
            "email": "ravi@example.edu",
            "password": "Secret123",
            "confirmPassword": "Secret123",
            "semester": 1,
        },
    )

    response = signed_in.patch(f"/api/resources/{resource['id']}", json={"title": "mine now"})
    assert response.status_code == 403


def test_subjects_need_admin(signed_in):
    subject = {"name": "Operating Systems", "code": "BCA301", "semester": 3, "credits": 4}

    assert signed_in.post("/api/subjects", json=subject).status_code == 403

    _make_admin(signed_in)
    assert signed_in.post("/api/subjects", json=subject).status_code == 201
    assert signed_in.get("/api/semesters/3/subjects").json()[0]["code"] == "BCA301"


def test_stats(signed_in):
    _upload(signed_in)

    stats = signed_in.get("/api/stats").json()

    assert stats["totalResources"] == 1
    assert stats["totalStudents"] == 1
    assert stats["popularSubjects"] == [{"subject": "Database Management System", "count": 1}]


def test_delete_keeps_going_when_storage_fails(signed_in, bucket):
    resource = _upload(signed_in).json()
    signed_in.put(f"/api/resources/{resource['id']}/bookmark")
    bucket.error = StorageException({"statusCode": 503, "message": "bucket down"})

    response = signed_in.delete(f"/api/resources/{resource['id']}")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert signed_in.get(f"/api/resources/{resource['id']}").status_code == 404


def test_deleted_resource_leaves_no_bookmarks(signed_in):
    resource = _upload(signed_in).json()
    signed_in.put(f"/api/resources/{resource['id']}/bookmark")

    signed_in.delete(f"/api/resources/{resource['id']}")

    assert signed_in.get("/api/me/bookmarks").json() == []


def test_bookmarking_unknown_resource_is_not_found(signed_in):
    response = signed_in.put("/api/resources/does-not-exist/bookmark")

    assert response.status_code == 404
    assert signed_in.get("/api/me/bookmarks").json() == []


def test_oversized_upload_is_rejected(signed_in, bucket, monkeypatch):
    monkeypatch.setattr("app.main.MAX_FILE_SIZE", 8)

    response = _upload(signed_in)

    assert response.status_code == 422
    assert response.json()["errors"]["file"] == "File size must be less than 100MB"
    assert bucket.files == {}


def test_upload_reading_stops_past_the_limit(monkeypatch):
    monkeypatch.setattr("app.main.MAX_FILE_SIZE", 10)
    monkeypatch.setattr("app.main.UPLOAD_CHUNK_SIZE", 4)
    body = io.BytesIO(b"x" * 64)

    with pytest.raises(ValidationError):
        asyncio.run(_read_upload(UploadFile(body, filename="big.pdf")))

    # three 4-byte chunks are enough to cross 10 bytes
    assert body.tell() == 12


def test_upload_under_the_limit_is_read_whole(monkeypatch):
    monkeypatch.setattr("app.main.UPLOAD_CHUNK_SIZE", 4)

    content = asyncio.run(_read_upload(UploadFile(io.BytesIO(b"0123456789"), filename="a.pdf")))

    assert content == b"0123456789"
