"""
Unit tests for the version pipeline.

Covers draft creation, the publish transition and the ordering rule that
published versions must strictly increase.
"""

import hashlib
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import event

from marketplace.database import Extension, ExtensionStatus, ExtensionVersion, VersionStatus
from marketplace.exceptions import (
    ConflictError,
    InternalError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from marketplace.services.storage import LocalBundleStorage
from marketplace.services.versions import VersionPipeline, compute_bundle_hash, highest, sort_descending

BUNDLE = b"PK\x03\x04 extension bundle bytes"


def _fail_extension_updates(conn, cursor, statement, parameters, context, executemany):
    if statement.startswith("UPDATE extensions "):
        raise RuntimeError("connection reset by peer")


@pytest.fixture
def pipeline(db_session, storage, clock):
    return VersionPipeline(db_session, storage, clock=clock)


@pytest.fixture
def acme_tool(make_publisher, make_extension):
    publisher = make_publisher()
    extension = make_extension(publisher, slug="tool", public_key="pk1")
    return publisher, extension


@pytest.mark.unit
class TestSemverHelpers:
    def test_highest_uses_precedence_not_lexical_order(self):
        assert highest(["1.9.0", "1.10.0", "1.2.0"]) == "1.10.0"

    def test_prerelease_is_lower_than_release(self):
        assert highest(["2.0.0-rc.1", "2.0.0"]) == "2.0.0"

    def test_sort_descending_skips_invalid(self):
        assert sort_descending(["1.0.0", "bogus", "0.2.0", "1.0.1"]) == ["1.0.1", "1.0.0", "0.2.0"]

    def test_highest_of_nothing(self):
        assert highest([]) is None


@pytest.mark.unit
class TestCreateVersion:
    def test_creates_draft_bound_to_hash(self, pipeline, acme_tool, storage, version_metadata):
        publisher, extension = acme_tool

        version = pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))

        assert version.status == VersionStatus.DRAFT
        assert version.bundle_hash == hashlib.sha256(BUNDLE).hexdigest()
        assert version.bundle_size == len(BUNDLE)
        assert version.bundle_path == "acme/tool/1.0.0.mpext"
        assert storage.objects["acme/tool/1.0.0.mpext"] == BUNDLE
        assert version.published_at is None

    def test_manifest_is_a_snapshot(self, pipeline, acme_tool, version_metadata, db_session):
        publisher, extension = acme_tool
        metadata = version_metadata("1.0.0")

        version = pipeline.create_version(publisher, extension, BUNDLE, metadata)
        metadata.manifest["entry"] = "changed.js"

        db_session.expire_all()
        assert db_session.get(ExtensionVersion, version.id).manifest["entry"] == "index.js"

    @pytest.mark.parametrize("bad", ["1.0", "v1.0.0", "latest", "1.0.0.0", "01.0.0"])
    def test_rejects_malformed_version(self, pipeline, acme_tool, version_metadata, storage, bad):
        publisher, extension = acme_tool
        with pytest.raises(InvalidInputError):
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata(bad))
        assert storage.objects == {}

    def test_rejects_malformed_app_bounds(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        with pytest.raises(InvalidInputError):
            pipeline.create_version(
                publisher, extension, BUNDLE, version_metadata("1.0.0", min_app_version="two")
            )

    def test_rejects_empty_bundle(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        with pytest.raises(InvalidInputError):
            pipeline.create_version(publisher, extension, b"", version_metadata())

    def test_rejects_oversized_bundle(self, db_session, storage, acme_tool, version_metadata):
        publisher, extension = acme_tool
        pipeline = VersionPipeline(db_session, storage, max_bundle_size=8)
        with pytest.raises(InvalidInputError):
            pipeline.create_version(publisher, extension, b"123456789", version_metadata())

    def test_duplicate_version_conflicts(self, pipeline, acme_tool, version_metadata, storage):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))

        with pytest.raises(ConflictError):
            pipeline.create_version(publisher, extension, b"other bytes", version_metadata("1.0.0"))
        assert storage.objects["acme/tool/1.0.0.mpext"] == BUNDLE

    def test_orphaned_bundle_path_conflicts(self, pipeline, acme_tool, version_metadata, storage, db_session):
        publisher, extension = acme_tool
        storage.objects["acme/tool/2.0.0.mpext"] = b"left behind"

        with pytest.raises(ConflictError):
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata("2.0.0"))
        assert db_session.query(ExtensionVersion).count() == 0

    def test_storage_failure_is_generic(self, pipeline, acme_tool, version_metadata, storage, db_session):
        publisher, extension = acme_tool
        storage.fail_put = True

        with pytest.raises(InternalError) as exc_info:
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata())

        assert exc_info.value.message == "Failed to upload bundle"
        assert "internal-host" not in str(exc_info.value)
        assert db_session.query(ExtensionVersion).count() == 0

    def test_drafts_are_not_compared_with_each_other(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("2.0.0"))
        draft = pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.5.0"))
        assert draft.status == VersionStatus.DRAFT


@pytest.mark.unit
class TestPublish:
    def test_publication_scenario(self, pipeline, acme_tool, version_metadata, db_session, clock):
        publisher, extension = acme_tool
        assert extension.status == ExtensionStatus.DRAFT

        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        result = pipeline.publish(extension, "1.0.0")

        assert result.first_release is True
        assert result.extension_status == ExtensionStatus.PUBLISHED
        assert result.version.status == VersionStatus.PUBLISHED
        assert result.version.published_at == clock.now
        assert extension.published_at == clock.now

        with pytest.raises(InvalidInputError):
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata("0.9.0"))
        with pytest.raises(InvalidInputError):
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0-beta"))

        clock.advance(hours=1)
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.1.0"))
        db_session.refresh(extension)
        assert extension.status == ExtensionStatus.PUBLISHED
        first_published_at = extension.published_at
        updated_before = extension.updated_at

        clock.advance(hours=1)
        result = pipeline.publish(extension, "1.1.0")

        assert result.first_release is False
        assert result.extension_status == ExtensionStatus.PUBLISHED
        assert extension.published_at == first_published_at
        assert extension.updated_at == clock.now
        assert extension.updated_at > updated_before
        assert [v.version for v in pipeline.list_published(extension)] == ["1.1.0", "1.0.0"]

    def test_double_publish_is_rejected_without_changes(self, pipeline, acme_tool, version_metadata, clock):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        first = pipeline.publish(extension, "1.0.0")
        published_at = first.version.published_at
        updated_at = extension.updated_at

        clock.advance(minutes=5)
        with pytest.raises(InvalidStateError):
            pipeline.publish(extension, "1.0.0")

        assert first.version.published_at == published_at
        assert extension.updated_at == updated_at

    def test_publish_unknown_version(self, pipeline, acme_tool):
        _, extension = acme_tool
        with pytest.raises(NotFoundError):
            pipeline.publish(extension, "9.9.9")

    def test_ordering_rechecked_at_publish_time(self, pipeline, acme_tool, version_metadata, db_session):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("2.0.0"))

        pipeline.publish(extension, "2.0.0")

        with pytest.raises(InvalidInputError):
            pipeline.publish(extension, "1.0.0")
        stale = (
            db_session.query(ExtensionVersion)
            .filter(ExtensionVersion.extension_id == extension.id, ExtensionVersion.version == "1.0.0")
            .one()
        )
        assert stale.status == VersionStatus.DRAFT

    def test_extension_stays_draft_without_published_version(self, pipeline, acme_tool, version_metadata, db_session):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))

        db_session.expire_all()
        assert db_session.get(Extension, extension.id).status == ExtensionStatus.DRAFT

    def test_failed_extension_update_leaves_both_rows_unchanged(
        self, pipeline, acme_tool, version_metadata, db_session, engine
    ):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        updated_at = extension.updated_at

        event.listen(engine, "before_cursor_execute", _fail_extension_updates)
        try:
            with pytest.raises(InternalError):
                pipeline.publish(extension, "1.0.0")
        finally:
            event.remove(engine, "before_cursor_execute", _fail_extension_updates)

        db_session.expire_all()
        version = (
            db_session.query(ExtensionVersion)
            .filter(ExtensionVersion.extension_id == extension.id, ExtensionVersion.version == "1.0.0")
            .one()
        )
        assert version.status == VersionStatus.DRAFT
        assert version.published_at is None
        stored = db_session.get(Extension, extension.id)
        assert stored.status == ExtensionStatus.DRAFT
        assert stored.published_at is None
        assert stored.updated_at == updated_at

    def test_publish_succeeds_after_a_failed_attempt(
        self, pipeline, acme_tool, version_metadata, db_session, engine
    ):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))

        event.listen(engine, "before_cursor_execute", _fail_extension_updates)
        try:
            with pytest.raises(InternalError):
                pipeline.publish(extension, "1.0.0")
        finally:
            event.remove(engine, "before_cursor_execute", _fail_extension_updates)

        result = pipeline.publish(extension, "1.0.0")

        assert result.first_release is True
        assert result.extension_status == ExtensionStatus.PUBLISHED


@pytest.mark.unit
class TestDownloads:
    def test_latest_is_highest_published(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        for v in ("1.0.0", "1.2.0", "1.10.0"):
            pipeline.create_version(publisher, extension, BUNDLE, version_metadata(v))
            pipeline.publish(extension, v)
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("2.0.0"))

        assert pipeline.resolve_download(extension).version == "1.10.0"
        assert pipeline.resolve_download(extension, "1.2.0").version == "1.2.0"

    def test_drafts_are_not_downloadable(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))

        with pytest.raises(NotFoundError):
            pipeline.resolve_download(extension, "1.0.0")
        with pytest.raises(NotFoundError):
            pipeline.resolve_download(extension)

    def test_build_download(self, pipeline, acme_tool, version_metadata):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        version = pipeline.publish(extension, "1.0.0").version

        response = pipeline.build_download(version)

        assert response.download_url == "memory://acme/tool/1.0.0.mpext?ttl=300"
        assert response.bundle_hash == compute_bundle_hash(BUNDLE)
        assert response.bundle_size == len(BUNDLE)
        assert response.expires_in == 300

    def test_signing_failure_is_generic(self, pipeline, acme_tool, version_metadata, storage):
        publisher, extension = acme_tool
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        version = pipeline.publish(extension, "1.0.0").version
        storage.fail_sign = True

        with pytest.raises(InternalError) as exc_info:
            pipeline.build_download(version)
        assert exc_info.value.message == "Failed to generate download URL"

    def test_hash_round_trip_through_local_storage(
        self, db_session, tmp_path, acme_tool, version_metadata
    ):
        publisher, extension = acme_tool
        local = LocalBundleStorage(str(tmp_path), "http://testserver/api/storage", "k" * 32)
        pipeline = VersionPipeline(db_session, local)
        pipeline.create_version(publisher, extension, BUNDLE, version_metadata("1.0.0"))
        version = pipeline.publish(extension, "1.0.0").version

        response = pipeline.build_download(version)
        url = urlparse(response.download_url)
        path = url.path[len("/api/storage/"):]
        params = parse_qs(url.query)

        assert local.verify(path, int(params["expires"][0]), params["signature"][0])
        fetched = local.open(path).read_bytes()
        assert hashlib.sha256(fetched).hexdigest() == response.bundle_hash
