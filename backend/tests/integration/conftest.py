"""
Fixtures for API integration tests.

The application runs against a file-backed SQLite database and the
filesystem storage backend rooted in a temporary directory. Signed download
URLs point back at the in-process /api/storage route, so bundles can be
fetched through the same client.
"""

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.auth import get_identity_provider, get_session_factory
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.services.storage import LocalBundleStorage, get_bundle_storage

STORAGE_KEY = "integration-storage-signing-key-0123"  # pragma: allowlist secret


@pytest.fixture
def api_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def api_session_factory(api_engine):
    return sessionmaker(bind=api_engine, autoflush=False)


@pytest.fixture
def bundle_storage(tmp_path):
    return LocalBundleStorage(str(tmp_path / "bundles"), "http://testserver/api/storage", STORAGE_KEY)


@pytest.fixture
def client(api_session_factory, bundle_storage, identity_provider):
    """TestClient with database, storage and identity provider overridden"""

    def override_get_db():
        db = api_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: api_session_factory
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_bundle_storage] = lambda: bundle_storage

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return {"Authorization": "Bearer session-alice"}


@pytest.fixture
def bob():
    return {"Authorization": "Bearer session-bob"}


@pytest.fixture
def upload_version(client):
    """Upload a bundle for an extension owned by the given caller"""

    def _upload(headers, slug, version, bundle=b"bundle-bytes", **metadata):
        fields = {"version": version, "manifest": {"name": slug, "version": version}}
        fields.update(metadata)
        return client.post(
            f"/api/publish/extensions/{slug}/versions",
            headers=headers,
            files={"bundle": (f"{slug}-{version}.mpext", bundle, "application/octet-stream")},
            data={"metadata": json.dumps(fields)},
        )

    return _upload


@pytest.fixture
def published_tool(client, alice, upload_version):
    """acme/tool with version 1.0.0 published"""
    assert client.post("/api/publishers", headers=alice, json={"display_name": "Acme", "slug": "acme"}).status_code == 201
    resp = client.post(
        "/api/publish/extensions",
        headers=alice,
        json={
            "public_key": "pk1",
            "name": "Tool",
            "slug": "tool",
            "short_description": "A very useful tool",
            "tags": ["productivity"],
        },
    )
    assert resp.status_code == 201
    assert upload_version(alice, "tool", "1.0.0", bundle=b"version one").status_code == 201
    assert client.post("/api/publish/extensions/tool/versions/1.0.0/publish", headers=alice).status_code == 200
    return "tool"
