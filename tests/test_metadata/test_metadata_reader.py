"""Unit tests for MetadataReader."""

import pytest

from metadata_sync.metadata import (
    ExifProfile,
    IptcProfile,
    MetadataReader,
    ProfileKind,
    ProfileSet,
)


class TestDescriptionPrecedence:
    """Test cases for choosing the unified description."""

    def test_xmp_wins(self, full_profiles):
        """Test that XMP beats IPTC and EXIF."""
        record = MetadataReader().read(full_profiles)
        assert record.description == "Xmp text"
        assert record.exif_image_description == "Exif text"

    def test_iptc_when_xmp_blank(self, make_xmp):
        """Test fallback to the IPTC caption when XMP has no description."""
        profiles = ProfileSet(
            exif=ExifProfile({'ImageDescription': 'Exif text'}),
            iptc=IptcProfile([('Caption-Abstract', 'Iptc text')]),
            xmp=make_xmp(keywords=['only keywords']),
        )
        assert MetadataReader().read(profiles).description == "Iptc text"

    def test_exif_last(self):
        """Test that EXIF is used when nothing else has a description."""
        profiles = ProfileSet(
            exif=ExifProfile({'ImageDescription': 'Exif text'}),
            iptc=IptcProfile([('Caption-Abstract', '   ')]),
        )
        assert MetadataReader().read(profiles).description == "Exif text"

    def test_blank_exif_description_is_none(self):
        """Test that whitespace EXIF text is treated as absent."""
        profiles = ProfileSet(exif=ExifProfile({'ImageDescription': '  ', 'Make': 'Canon'}))
        record = MetadataReader().read(profiles)
        assert record.description is None
        assert record.exif_image_description is None


class TestKeywordsAndCategories:
    """Test cases for keyword merging and categories."""

    def test_keyword_merge_first_casing_wins(self, full_profiles):
        """Test that IPTC and XMP keywords merge ignoring case."""
        record = MetadataReader().read(full_profiles)
        assert record.keywords == ("Cat", "dog", "Bird")

    def test_keyword_merge_xmp_first(self, full_profiles):
        """Test a configured scan order starting with XMP."""
        reader = MetadataReader(keyword_source_order=[ProfileKind.XMP, ProfileKind.IPTC])
        assert reader.read(full_profiles).keywords == ("cat", "Bird", "dog")

    def test_categories_from_xmp(self, full_profiles):
        """Test that categories come from dc:type."""
        assert MetadataReader().read(full_profiles).categories == ("Animals",)

    def test_exif_in_keyword_order_rejected(self):
        """Test that EXIF cannot be a keyword source."""
        with pytest.raises(ValueError):
            MetadataReader(keyword_source_order=[ProfileKind.EXIF])

    def test_from_config(self, sample_config):
        """Test building a reader from configuration."""
        sample_config['metadata']['keyword_source_order'] = ['XMP', 'iptc']
        reader = MetadataReader.from_config(sample_config)
        assert reader.keyword_source_order == (ProfileKind.XMP, ProfileKind.IPTC)

    def test_from_config_defaults(self):
        """Test defaults when the config has no metadata section."""
        reader = MetadataReader.from_config({})
        assert reader.keyword_source_order == (ProfileKind.IPTC, ProfileKind.XMP)


class TestMissingAndMalformed:
    """Test cases for absent and broken profiles."""

    def test_no_profiles(self):
        """Test that an image without metadata yields an empty record."""
        record = MetadataReader().read(ProfileSet())
        assert record.description is None
        assert record.exif_image_description is None
        assert record.keywords == ()
        assert record.categories == ()
        assert record.is_empty

    def test_malformed_xmp_ignored(self):
        """Test that broken XMP is skipped and other profiles still count."""
        profiles = ProfileSet(
            iptc=IptcProfile([('Caption-Abstract', 'Iptc text'), ('Keywords', 'tree')]),
            xmp=b'<x:xmpmeta><unclosed>',
        )
        record = MetadataReader().read(profiles)
        assert record.description == "Iptc text"
        assert record.keywords == ("tree",)
        assert record.categories == ()

    def test_precedence_chain(self, make_xmp):
        """Test each fallback step as higher sources disappear."""
        exif = ExifProfile({'ImageDescription': 'C'})
        iptc = IptcProfile([('Caption-Abstract', 'B')])
        reader = MetadataReader()

        assert reader.read(ProfileSet(exif=exif, iptc=iptc, xmp=make_xmp('A'))).description == "A"
        assert reader.read(ProfileSet(exif=exif, iptc=iptc)).description == "B"
        assert reader.read(ProfileSet(exif=exif)).description == "C"
        assert reader.read(ProfileSet()).description is None
