import os

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["R2_ENDPOINT"] = ""

import pytest
from fastapi.testclient import TestClient

from instaplus.core.security import create_access_token
from instaplus.core.storage import MediaStorage
from instaplus.db.init_db import create_all_tables, drop_all_tables
from instaplus.db.session import SessionLocal
from instaplus.deps import get_media_storage
from instaplus.main import app
from instaplus.modules.realtime.manager import manager
from instaplus.modules.users.schemas.user import UserCreate
from instaplus.modules.users.services.user import create_user, follow_user


@pytest.fixture
def db():
    create_all_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_all_tables()


@pytest.fixture
def storage(tmp_path):
    return MediaStorage(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def client(db, storage):
    app.dependency_overrides[get_media_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        manager.rooms.clear()
        manager.memberships.clear()


@pytest.fixture
def make_user(db):
    def _make_user(username: str, follows=()):
        user = create_user(db, UserCreate(username=username, full_name=username.title()))
        for other in follows:
            follow_user(db, user.id, other.id)
        return user
    return _make_user


def _auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth():
    return _auth_headers


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


def _media_item(public_id: str = "instaplus/a.jpg", kind: str = "image") -> dict:
    return {
        "kind": kind,
        "src": f"http://testserver/media/{public_id}",
        "publicId": public_id,
        "width": 10,
        "height": 10,
    }


@pytest.fixture
def media_item():
    return _media_item
