"""Shared fixtures: a fresh SQLite catalog and upload root per test."""

import io
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text

from model_repo.core.config import Settings
from model_repo.core.database import Catalog
from model_repo.domain.models import UploadedFile
from model_repo.domain.repos import CatalogRepo
from model_repo.domain.storage import LocalModelStore
from model_repo.domain.visibility import Visibility
from model_repo.main import create_app

_user_seq = count(1)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_URL=f"sqlite:///{tmp_path / 'registry.db'}",
        UPLOAD_ROOT=str(tmp_path / "uploads"),
        LOG_LEVEL="WARNING",
        DISABLE_REGISTRATION=False,
    )


@pytest.fixture
def catalog(settings):
    cat = Catalog(settings.DB_URL).open()
    cat.init_schema()
    yield cat
    cat.close()


@pytest.fixture
def repo(catalog):
    return CatalogRepo(catalog)


@pytest.fixture
def store(settings):
    return LocalModelStore(settings.UPLOAD_ROOT)


@pytest.fixture
def make_user(repo):
    def _make(username=None):
        n = next(_user_seq)
        name = username or f"user{n}"
        return repo.create_user(name, f"{name}@example.com", "not-a-real-hash")

    return _make


@pytest.fixture
def make_model(repo):
    def _make(owner, name="Test Model", visibility=Visibility.private, task_type="detect"):
        return repo.create_model(
            owner_id=owner.id,
            name=name,
            description=None,
            task_type=task_type,
            zoom_level=19,
            visibility=visibility,
        )

    return _make


def upload_parts(files):
    """Build UploadedFile parts from a dict or a list of (name, bytes) pairs."""
    pairs = files.items() if isinstance(files, dict) else files
    return [UploadedFile(name=name, stream=io.BytesIO(data), size=len(data)) for name, data in pairs]


# Schema written by the earlier server release, as SQLite accepts it.
LEGACY_DDL = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        username VARCHAR(50) UNIQUE NOT NULL,
        email VARCHAR(100) UNIQUE NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE models (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        description TEXT,
        task_type VARCHAR(20) NOT NULL CHECK (task_type IN ('detect', 'obb', 'pose')),
        zoom_level INTEGER DEFAULT 19 CHECK (zoom_level BETWEEN 8 AND 21),
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        is_public BOOLEAN DEFAULT false,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE model_versions (
        id INTEGER PRIMARY KEY,
        model_id INTEGER REFERENCES models(id) ON DELETE CASCADE,
        version VARCHAR(20) NOT NULL,
        file_path VARCHAR(255) NOT NULL,
        file_size BIGINT,
        metadata JSON,
        is_active BOOLEAN DEFAULT true,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX idx_models_task_type ON models(task_type)",
    "CREATE INDEX idx_models_public ON models(is_public)",
    "CREATE INDEX idx_model_versions_active ON model_versions(is_active)",
]

LEGACY_ROWS = [
    "INSERT INTO users (id, username, email, password_hash, created_at, updated_at) "
    "VALUES (1, 'old', 'old@example.com', :hash, '2023-01-01 00:00:00', '2023-01-01 00:00:00')",
    "INSERT INTO models (id, name, task_type, user_id, is_public, created_at, updated_at) VALUES "
    "(1, 'shared', 'detect', 1, 1, '2023-01-01 00:00:00', '2023-01-01 00:00:00'), "
    "(2, 'hidden', 'detect', 1, 0, '2023-01-01 00:00:00', '2023-01-01 00:00:00')",
    # two rows left active by an interrupted upload
    "INSERT INTO model_versions (id, model_id, version, file_path, file_size, metadata, is_active, created_at) VALUES "
    "(1, 1, '1.0.0', 'uploads/models/1', 10, '{}', 1, '2023-01-01 00:00:00'), "
    "(2, 1, '1.1.0', 'uploads/models/1', 12, '{}', 1, '2023-01-02 00:00:00')",
]


def build_legacy_db(path, password_hash="h"):
    url = f"sqlite:///{path}"
    engine = create_engine(url)
    with engine.begin() as conn:
        for statement in LEGACY_DDL:
            conn.execute(text(statement))
        for statement in LEGACY_ROWS:
            params = {"hash": password_hash} if ":hash" in statement else {}
            conn.execute(text(statement), params)
    engine.dispose()
    return url


# ---------------- HTTP ----------------


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, username=None, password="s3cret-pass", token=None):
    n = next(_user_seq)
    name = username or f"member{n}"
    body = {"username": name, "email": f"{name}@example.com", "password": password}
    if token:
        body["token"] = token
    return client.post("/api/auth/register", json=body)


@pytest.fixture
def auth_headers(client):
    """Register a fresh user and return (user json, Authorization headers)."""

    def _make(username=None):
        resp = register(client, username)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _make


@pytest.fixture
def create_model(client):
    def _create(headers, name="Test Model", visibility="private", task_type="detect", **extra):
        body = {"name": name, "task_type": task_type, "visibility": visibility, **extra}
        resp = client.post("/api/models", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
