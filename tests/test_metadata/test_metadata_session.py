"""Unit tests for MetadataSession using an in-memory profile store."""

import pytest
from PIL import UnidentifiedImageError

from metadata_sync.metadata import (
    InvalidSessionStateError,
    MetadataRecord,
    MetadataSession,
    ProfileSet,
    ProfileStoreError,
    SessionState,
    XmpDocument,
)
from metadata_sync.metadata.writer import XMP_REPLACED_WARNING


class TestSessionState:
    """Test cases for the session state machine."""

    def test_write_before_read(self, sample_image, memory_store):
        """Test that writing an unread session fails."""
        with MetadataSession(sample_image, store=memory_store) as session:
            assert session.state is SessionState.UNREAD
            with pytest.raises(InvalidSessionStateError):
                session.write(MetadataRecord(description="x"))

    def test_read_after_close(self, sample_image, memory_store):
        """Test that a closed session cannot be reused."""
        session = MetadataSession(sample_image, store=memory_store)
        with session:
            session.read()

        assert session.state is SessionState.CLOSED
        with pytest.raises(InvalidSessionStateError):
            session.read()

    def test_shared_store_not_stopped(self, sample_image, memory_store):
        """Test that a session leaves a store it was given running."""
        memory_store.start()
        with MetadataSession(sample_image, store=memory_store) as session:
            session.read()

        assert memory_store.started is True

    def test_missing_file(self, tmp_path, memory_store):
        """Test that reading a missing file raises FileNotFoundError."""
        with MetadataSession(tmp_path / "missing.jpg", store=memory_store) as session:
            with pytest.raises(FileNotFoundError):
                session.read()

    def test_not_an_image(self, tmp_path, memory_store):
        """Test that non-image data is rejected before profiles are read."""
        path = tmp_path / "fake.jpg"
        path.write_bytes(b'fake image data')

        with MetadataSession(path, store=memory_store) as session:
            with pytest.raises(UnidentifiedImageError):
                session.read()

    def test_verification_can_be_disabled(self, tmp_path, memory_store):
        """Test reading profiles of a file Pillow cannot decode."""
        path = tmp_path / "fake.jpg"
        path.write_bytes(b'fake image data')

        with MetadataSession(path, store=memory_store, verify_image=False) as session:
            assert session.read().is_empty


class TestSessionWrite:
    """Test cases for writing through a session."""

    def test_no_metadata_scenario(self, sample_image, memory_store):
        """Test writing description and keywords into a bare image."""
        with MetadataSession(sample_image, store=memory_store) as session:
            record = session.read()
            assert session.profiles == ProfileSet()

            report = session.write(
                record.with_description("A red square").with_keywords(["red", "Square", "red"])
            )

            assert report.changed
            assert session.record.description == "A red square"
            assert session.record.keywords == ("red", "Square")

        stored = memory_store.load(sample_image)
        assert stored.exif.get('ImageDescription') == "A red square"
        assert stored.iptc.values('Keywords') == ["red", "Square"]
        assert XmpDocument.parse(stored.xmp).get_description() == "A red square"

    def test_unchanged_write_skips_save(self, sample_image, memory_store):
        """Test that writing the record just read does not touch the file."""
        with MetadataSession(sample_image, store=memory_store) as session:
            session.write(session.read().with_description("Once"))
            assert memory_store.saves == 1

            report = session.write(session.record)

        assert not report.changed
        assert memory_store.saves == 1

    def test_failed_save_keeps_state(self, sample_image, memory_store):
        """Test that a failed commit leaves the session usable for a retry."""
        memory_store.fail_next_save = True

        with MetadataSession(sample_image, store=memory_store) as session:
            record = session.read()
            update = record.with_description("Retry me")

            with pytest.raises(ProfileStoreError):
                session.write(update)

            assert session.state is SessionState.READ
            assert session.profiles == ProfileSet()
            assert session.record == record

            session.write(update)
            assert session.record.description == "Retry me"

        assert memory_store.saves == 1

    def test_malformed_xmp_warning(self, sample_image, memory_store):
        """Test that replacing broken XMP is reported to the caller."""
        memory_store.put(sample_image, ProfileSet(xmp=b'<x:xmpmeta><broken'))

        with MetadataSession(sample_image, store=memory_store) as session:
            report = session.write(session.read().with_description("Recovered"))

        assert XMP_REPLACED_WARNING in report.warnings
        stored = memory_store.load(sample_image)
        assert XmpDocument.parse(stored.xmp).get_description() == "Recovered"

    def test_clear_prunes_profiles(self, sample_image, memory_store):
        """Test that clearing everything leaves the image without blocks."""
        with MetadataSession(sample_image, store=memory_store) as session:
            session.write(
                session.read()
                .with_description("Temporary")
                .with_keywords(["a"])
                .with_categories(["b"])
            )
            report = session.write(
                MetadataRecord(description='', exif_image_description='', keywords=(), categories=())
            )

            assert len(report.removed) == 3
            assert session.record.is_empty

        assert memory_store.load(sample_image) == ProfileSet()

    def test_sunset_scenario(self, sample_image, memory_store):
        """Test description, keywords and categories on an image without profiles."""
        with MetadataSession(sample_image, store=memory_store) as session:
            record = session.read()
            assert record.description is None
            assert record.keywords == ()
            assert record.categories == ()

            session.write(
                record.with_description("Sunset over the bay")
                .with_keywords(["sunset", "bay"])
                .with_categories(["landscape"])
            )

        with MetadataSession(sample_image, store=memory_store) as session:
            record = session.read()

        assert record.description == "Sunset over the bay"
        assert record.keywords == ("sunset", "bay")
        assert record.categories == ("landscape",)

    def test_repeated_write_is_byte_stable(self, sample_image, memory_store):
        """Test that writing the same record twice leaves identical profiles."""
        update = MetadataRecord(
            description="Stable",
            exif_image_description="Stable",
            keywords=("a", "b"),
            categories=("c",),
        )
        with MetadataSession(sample_image, store=memory_store) as session:
            session.read()
            session.write(update)
            first = memory_store.load(sample_image)

            report = session.write(update)

        assert not report.changed
        assert memory_store.load(sample_image).xmp == first.xmp
