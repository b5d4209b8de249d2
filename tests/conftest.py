import re
from datetime import datetime, timedelta
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.database import Base, SessionLocal, configure_engine
from app.identity import IdentityProvider
from app.main import create_app
from app.models import models
from app.schemas import RegisterForm
from app.services.auth import AuthService
from app.services.engagement import EngagementService
from app.services.resources import ResourceService


class FakeBucket:
    """In-memory stand-in for ``supabase.storage.from_(bucket_id)``."""

    base_url = "https://storage.test/object/public/resources"

    def __init__(self):
        self.files = {}
        self.error = None

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    def upload(self, path, file, file_options=None):
        self._maybe_fail()
        self.files[path] = (file, (file_options or {}).get("content-type"))
        return {"Key": path}

    def get_public_url(self, path, options=None):
        self._maybe_fail()
        url = f"{self.base_url}/{path}"
        options = options or {}
        if options.get("download"):
            return f"{url}?download="
        if options.get("transform"):
            query = "&".join(f"{k}={v}" for k, v in options["transform"].items())
            return f"https://storage.test/render/image/public/resources/{path}?{query}"
        return url

    def remove(self, paths):
        self._maybe_fail()
        for path in paths:
            self.files.pop(path, None)
        return []

    def info(self, path):
        self._maybe_fail()
        content, content_type = self.files[path]
        return {"name": path, "size": len(content), "content_type": content_type}


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def __call__(self, to_email, subject, body):
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return True

    def last_link_params(self):
        body = self.sent[-1]["body"]
        user_id = re.search(r"userId=([^&\s]+)", body).group(1)
        secret = re.search(r"secret=([^&\s]+)", body).group(1)
        return unquote(user_id), unquote(secret)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="test-key",
        database_url=f"sqlite:///{tmp_path / 'library.db'}",
        storage_bucket_id="resources",
        app_name="Test Library",
        app_url="http://library.test",
    )


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def engine(settings):
    engine = configure_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def identity(db, mailer):
    return IdentityProvider(db, mailer, app_name="Test Library")


@pytest.fixture
def auth(db, identity, settings):
    return AuthService(db, identity, settings)


@pytest.fixture
def resources(db):
    return ResourceService(db)


@pytest.fixture
def engagement(db):
    return EngagementService(db)


@pytest.fixture
def make_resource(db):
    """Insert resource rows directly, newest last unless upload_date is given."""
    start = datetime(2024, 1, 1)
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        tags = overrides.pop("tags", [])
        values = dict(
            title=f"Resource {counter['n']}",
            description="",
            semester=1,
            subject="C Programming",
            category="notes",
            file_id=f"file-{counter['n']}",
            file_type="application/pdf",
            file_size=1024,
            uploaded_by="uploader",
            upload_date=start + timedelta(hours=counter["n"]),
            download_count=0,
            rating=0,
            status="active",
        )
        values.update(overrides)
        resource = models.Resource(**values)
        for tag in tags:
            resource.tag_rows.append(models.ResourceTag(tag=tag))
        db.add(resource)
        db.commit()
        db.refresh(resource)
        return resource

    return _make


@pytest.fixture
def register_form():
    def _form(**overrides):
        values = dict(
            name="Asha Rao",
            email="asha@example.edu",
            password="Secret123",
            confirmPassword="Secret123",
            semester=3,
            college="City College",
        )
        values.update(overrides)
        return RegisterForm(**values)

    return _form


@pytest.fixture
def app(settings, bucket, mailer):
    return create_app(settings, bucket=bucket, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def signed_in(client):
    """Client with a registered, logged-in student."""
    response = client.post(
        "/api/auth/register",
        json={
            "name": "Asha Rao",
            "email": "asha@example.edu",
            "password": "Secret123",
            "confirmPassword": "Secret123",
            "semester": 3,
        },
    )
    assert response.status_code == 201
    return client
