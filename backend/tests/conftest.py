"""
Pytest configuration and fixtures for marketplace backend tests.

Settings are read from the environment when marketplace modules are first
imported, so the test environment is set up before anything else.
"""

import os
import tempfile
from datetime import datetime, timedelta
from typing import Dict

os.environ.setdefault("MARKETPLACE_DATABASE_URL", "sqlite://")
os.environ.setdefault("MARKETPLACE_STORAGE_BACKEND", "local")
os.environ.setdefault("MARKETPLACE_STORAGE_LOCAL_ROOT", tempfile.mkdtemp(prefix="marketplace-bundles-"))
os.environ.setdefault("MARKETPLACE_STORAGE_SIGNING_KEY", "test-signing-key-0123456789abcdef0123")  # pragma: allowlist secret
os.environ.setdefault("MARKETPLACE_AUTH_JWT_SECRET", "test-jwt-secret-for-unit-tests-only")  # pragma: allowlist secret

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from marketplace.database import Base, Category, Extension, Publisher  # noqa: E402
from marketplace.schemas.extensions import ExtensionCreate, VersionMetadata  # noqa: E402
from marketplace.schemas.publishers import PublisherCreate  # noqa: E402
from marketplace.services.catalog import ExtensionCatalog  # noqa: E402
from marketplace.services.identity import IdentityProviderError  # noqa: E402
from marketplace.services.publishers import PublisherRegistry  # noqa: E402
from marketplace.services.storage import StorageConflictError, StorageError  # noqa: E402


class FakeIdentityProvider:
    """Identity provider that knows a fixed set of session tokens"""

    def __init__(self, sessions: Dict[str, str] = None):
        self.sessions = dict(sessions or {})
        self.calls = 0

    def verify(self, token: str) -> str:
        self.calls += 1
        if token not in self.sessions:
            raise IdentityProviderError("Unknown session token")
        return self.sessions[token]


class InMemoryBundleStorage:
    """Bundle storage kept in a dict; write-once like the real backends"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_put = False
        self.fail_sign = False

    def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if self.fail_put:
            raise StorageError("bucket unavailable: s3://internal-host/extensions")
        if path in self.objects:
            raise StorageConflictError(path)
        self.objects[path] = bytes(data)
        return path

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        if self.fail_sign or path not in self.objects:
            raise StorageError(f"cannot sign {path}")
        return f"memory://{path}?ttl={ttl_seconds}"

    def public_url(self, path: str) -> str:
        return f"memory://public/{path}"


class MutableClock:
    """Naive UTC clock that tests can move forward"""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    """In-memory SQLite database with the full schema"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Session:
    """Provide a database session bound to the test engine"""
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider({"session-alice": "user-alice", "session-bob": "user-bob"})


@pytest.fixture
def storage() -> InMemoryBundleStorage:
    return InMemoryBundleStorage()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def make_publisher(db_session):
    """Factory registering a publisher for a subject"""

    def _make(subject_id: str = "user-alice", slug: str = "acme", display_name: str = "Acme Tools") -> Publisher:
        return PublisherRegistry(db_session).register(
            subject_id, PublisherCreate(display_name=display_name, slug=slug)
        )

    return _make


@pytest.fixture
def make_extension(db_session):
    """Factory creating a draft extension for a publisher"""

    def _make(publisher: Publisher, slug: str = "tool", public_key: str = "pk1", **overrides) -> Extension:
        spec = ExtensionCreate(
            public_key=public_key,
            name=overrides.pop("name", "Tool"),
            slug=slug,
            short_description=overrides.pop("short_description", "A very useful tool"),
            **overrides,
        )
        return ExtensionCatalog(db_session).create(publisher, spec)

    return _make


@pytest.fixture
def make_category(db_session):
    def _make(slug: str = "productivity", name: str = "Productivity") -> Category:
        category = Category(slug=slug, name=name)
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _make


@pytest.fixture
def version_metadata():
    """Factory for upload metadata"""

    def _make(version: str = "1.0.0", **overrides) -> VersionMetadata:
        fields = {"version": version, "manifest": {"name": "tool", "version": version, "entry": "index.js"}}
        fields.update(overrides)
        return VersionMetadata(**fields)

    return _make
