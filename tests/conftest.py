import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Reloaded in this order so configuration changes take effect cleanly.
# app.models and app.services.cloudinary_store are deliberately left out:
# the first owns the shared table metadata, the second is stubbed.
MODULE_ORDER = [
    "app.config",
    "app.core.metrics",
    "app.core.rate_limit",
    "app.core.security",
    "app.core.exceptions",
    "app.db",
    "app.storage",
    "app.services.stats",
    "app.services.accounts",
    "app.services.availability",
    "app.services.uploads",
    "app.services.recents",
    "app.services.deletion",
    "app.api.auth",
    "app.api.routes",
    "app.main",
]

VALID_REGISTRATION = {
    "firstname": "Ada",
    "lastname": "Lovelace",
    "email": "ada@example.com",
    "username": "ada_l",
    "phone": "+44 20 7946 0000",
    "password": "Engine1843",
    "confirmPassword": "Engine1843",
}


class StubMediaStore:
    """In-process stand-in for CloudinaryStore."""

    def __init__(self, *args, **kwargs):
        self.uploads = []
        self.deleted = []
        self.fail_uploads = {}
        self.delete_error = None
        self.listing = {"resources": [], "total_count": 0}

    def upload(self, data, folder, display_name, resource_type):
        if display_name in self.fail_uploads:
            raise self.fail_uploads[display_name]
        self.uploads.append((folder, display_name, resource_type))
        public_id = f"{folder}/{display_name}"
        fmt = "png" if resource_type == "image" else ("mp4" if resource_type == "video" else None)
        response = {
            "public_id": public_id,
            "secure_url": f"https://res.cloudinary.com/demo/{resource_type}/upload/{public_id}",
            "bytes": len(data),
            "format": fmt,
            "resource_type": resource_type,
        }
        if resource_type == "image":
            response.update({"width": 640, "height": 480})
        return response

    def delete(self, public_id, resource_type):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((public_id, resource_type))
        return "ok"

    def list_resources(self, prefix, resource_type="image", limit=20, cursor=None):
        self.last_listing_call = (prefix, resource_type, limit, cursor)
        return self.listing


def prepare_client(tmp_path, monkeypatch, **env):
    settings = {
        "DB_URL": f"sqlite:///{tmp_path / 'test.db'}",
        "ENVIRONMENT": "test",
        "BCRYPT_ROUNDS": "4",
        "RATE_LIMIT_PER_MINUTE": "1000",
        "AUTH_RATE_LIMIT_PER_MINUTE": "1000",
        "MAX_FILE_SIZE_BYTES": str(10 * 1024 * 1024),
        "UPLOAD_PROGRESS_INTERVAL_SECONDS": "0.01",
        "UPLOAD_FOLDER_ROOT": "Printing",
        "CLOUDINARY_CLOUD_NAME": "demo",
        "CLOUDINARY_API_KEY": "key",
        "CLOUDINARY_API_SECRET": "secret",
        "REDIS_URL": "",
        "CORS_ORIGINS": "http://localhost:3000",
    }
    settings.update(env)
    for key, value in settings.items():
        monkeypatch.setenv(key, value)

    monkeypatch.setattr("app.services.cloudinary_store.CloudinaryStore", StubMediaStore)

    for module_name in MODULE_ORDER:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    main = sys.modules["app.main"]
    return TestClient(main.app)


@pytest.fixture
def client(tmp_path, monkeypatch):
    test_client = prepare_client(tmp_path, monkeypatch)
    with test_client as c:
        yield c


@pytest.fixture
def media_store(client):
    storage = sys.modules["app.storage"]
    return storage.get_media_store()


@pytest.fixture
def db_session(client):
    db = sys.modules["app.db"]
    with db.session_scope() as session:
        yield session


def register(client, **overrides):
    payload = dict(VALID_REGISTRATION)
    payload.update(overrides)
    return client.post("/auth/register", json=payload)
