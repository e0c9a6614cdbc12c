"""
Unit tests for download recording.

The concurrency test uses a file-backed SQLite database so that every worker
thread gets its own connection and writes genuinely contend.
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.database import (
    Base,
    Extension,
    ExtensionDownload,
    ExtensionVersion,
    Publisher,
    VersionStatus,
)
from marketplace.services.downloads import ClientMetadata, DownloadRecorder, hash_ip, record_detached


def _seed(session):
    publisher = Publisher(user_id="user-alice", display_name="Acme", slug="acme")
    session.add(publisher)
    session.flush()
    extension = Extension(
        publisher_id=publisher.id,
        extension_id="acme/tool",
        public_key="pk1",
        slug="tool",
        name="Tool",
        short_description="A very useful tool",
    )
    session.add(extension)
    session.flush()
    version = ExtensionVersion(
        extension_id=extension.id,
        version="1.0.0",
        bundle_path="acme/tool/1.0.0.mpext",
        bundle_size=3,
        bundle_hash="0" * 64,
        manifest={},
        status=VersionStatus.PUBLISHED,
    )
    session.add(version)
    session.commit()
    return extension.id, version.id


@pytest.fixture
def seeded(db_session):
    return _seed(db_session)


@pytest.mark.unit
class TestClientMetadata:
    def test_first_forwarded_hop_is_hashed(self):
        client = ClientMetadata.from_headers(
            {"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "ext-cli/1.2"},
            client_host="10.0.0.2",
        )
        assert client.ip_hash == hash_ip("203.0.113.7")
        assert client.user_agent == "ext-cli/1.2"

    def test_falls_back_to_real_ip_then_peer(self):
        assert ClientMetadata.from_headers({"x-real-ip": "198.51.100.1"}, "10.0.0.2").ip_hash == hash_ip(
            "198.51.100.1"
        )
        assert ClientMetadata.from_headers({}, "10.0.0.2").ip_hash == hash_ip("10.0.0.2")
        assert ClientMetadata.from_headers({}).ip_hash is None

    def test_ip_is_never_stored_in_clear(self):
        digest = hash_ip("203.0.113.7")
        assert len(digest) == 16
        assert set(digest) <= set("0123456789abcdef")
        assert hash_ip("203.0.113.8") != digest

    def test_platform_is_truncated(self):
        client = ClientMetadata.from_headers({"x-platform": "p" * 80, "x-app-version": "3.1.0"})
        assert client.platform == "p" * 50
        assert client.app_version == "3.1.0"


@pytest.mark.unit
class TestDownloadRecorder:
    def test_records_event_and_counters(self, db_session, seeded):
        extension_id, version_id = seeded
        client = ClientMetadata(user_agent="ext-cli/1.2", ip_hash=hash_ip("203.0.113.7"))

        DownloadRecorder(db_session).record(extension_id, version_id, "user-bob", client)

        db_session.expire_all()
        assert db_session.get(Extension, extension_id).total_downloads == 1
        assert db_session.get(ExtensionVersion, version_id).downloads == 1
        event = db_session.query(ExtensionDownload).one()
        assert event.user_id == "user-bob"
        assert event.ip_hash == hash_ip("203.0.113.7")

    def test_anonymous_download(self, db_session, seeded):
        extension_id, version_id = seeded
        DownloadRecorder(db_session).record(extension_id, version_id)
        assert db_session.query(ExtensionDownload).one().user_id is None

    def test_failure_rolls_back_event(self, db_session, seeded, monkeypatch):
        extension_id, version_id = seeded
        recorder = DownloadRecorder(db_session)
        real_execute = db_session.execute
        calls = []

        def failing_execute(statement, *args, **kwargs):
            calls.append(statement)
            if len(calls) == 2:
                raise RuntimeError("connection dropped")
            return real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", failing_execute)
        with pytest.raises(RuntimeError):
            recorder.record(extension_id, version_id)
        monkeypatch.undo()

        db_session.expire_all()
        assert db_session.query(ExtensionDownload).count() == 0
        assert db_session.get(Extension, extension_id).total_downloads == 0
        assert db_session.get(ExtensionVersion, version_id).downloads == 0


@pytest.mark.unit
class TestRecordDetached:
    def test_errors_are_swallowed(self):
        session = MagicMock()
        session.flush.side_effect = RuntimeError("database is locked")

        record_detached(lambda: session, "ext-id", "version-id")

        session.rollback.assert_called_once()
        session.close.assert_called_once()

    def test_concurrent_downloads_lose_no_increments(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'downloads.db'}",
            connect_args={"timeout": 30, "check_same_thread": False},
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine)

        with factory() as session:
            extension_id, version_id = _seed(session)

        with ThreadPoolExecutor(max_workers=10) as pool:
            futures = [
                pool.submit(record_detached, factory, extension_id, version_id, None, None) for _ in range(100)
            ]
            for future in futures:
                future.result()

        with factory() as session:
            assert session.get(Extension, extension_id).total_downloads == 100
            assert session.get(ExtensionVersion, version_id).downloads == 100
            assert session.query(ExtensionDownload).count() == 100
        engine.dispose()
