"""Unit tests for the vision model response parser."""

from metadata_sync.parsing import ParsedResponse, parse_response
from metadata_sync.parsing.response_parser import EMPTY_RESPONSE_DESCRIPTION


class TestParseResponse:
    """Test cases for parse_response."""

    def test_full_response(self):
        """Test a response with description, categories and keywords."""
        text = (
            "A tabby cat sleeping on a sunny windowsill.\n"
            "\n"
            "Categories:\n"
            "- Animals\n"
            "- Home\n"
            "\n"
            "Keywords: cat, tabby, window, sunlight"
        )
        parsed = parse_response(text)

        assert parsed.successfully_parsed
        assert parsed.description == "A tabby cat sleeping on a sunny windowsill."
        assert parsed.categories == ["Animals", "Home"]
        assert parsed.keywords == ["cat", "tabby", "window", "sunlight"]
        assert parsed.raw_response == text

    def test_bold_headers_and_bullets(self):
        """Test markdown-style headers and bullet lists."""
        text = (
            "**Description:** A mountain lake at dawn.\n"
            "\n"
            "**Keywords:**\n"
            "* lake\n"
            "* mountain\n"
            "* dawn\n"
            "**Categories:**\n"
            "• Landscape"
        )
        parsed = parse_response(text)

        assert parsed.description == "A mountain lake at dawn."
        assert parsed.keywords == ["lake", "mountain", "dawn"]
        assert parsed.categories == ["Landscape"]

    def test_hyphenated_words_kept(self):
        """Test that hyphens inside items are not treated as separators."""
        parsed = parse_response("Photo.\n\nKeywords: black-and-white, close-up")
        assert parsed.keywords == ["black-and-white", "close-up"]

    def test_case_insensitive_headers(self):
        """Test lower-case section names."""
        parsed = parse_response("Desc.\n\ncategories: Sports\nkeywords: ball; goal")
        assert parsed.categories == ["Sports"]
        assert parsed.keywords == ["ball", "goal"]
        assert parsed.description == "Desc."

    def test_plain_text_is_description(self):
        """Test that text without sections becomes the description."""
        parsed = parse_response("  Just a description.  ")

        assert parsed.successfully_parsed
        assert parsed.description == "Just a description."
        assert parsed.keywords == []
        assert parsed.categories == []

    def test_empty_response(self):
        """Test the placeholder for empty model output."""
        for text in (None, "", "   \n"):
            parsed = parse_response(text)
            assert not parsed.successfully_parsed
            assert parsed.description == EMPTY_RESPONSE_DESCRIPTION


class TestParsedResponseToRecord:
    """Test cases for converting parse results into records."""

    def test_to_record(self):
        """Test that parsed content maps onto record fields."""
        parsed = parse_response("Cat.\n\nKeywords: cat, Cat, pet\n\nCategories:\nAnimals")
        record = parsed.to_record()

        assert record.description == "Cat."
        assert record.exif_image_description == "Cat."
        assert record.keywords == ("cat", "pet")
        assert record.categories == ("Animals",)

    def test_to_record_without_exif(self):
        """Test leaving the EXIF channel unset."""
        record = parse_response("Cat.").to_record(sync_exif=False)
        assert record.description == "Cat."
        assert record.exif_image_description is None

    def test_missing_sections_left_unspecified(self):
        """Test that absent sections do not clear existing values."""
        record = parse_response("Only words.").to_record()
        assert record.keywords is None
        assert record.categories is None

    def test_unparsed_response_writes_nothing(self):
        """Test that a failed parse produces an empty record."""
        record = ParsedResponse(description="x", successfully_parsed=False).to_record()
        assert record.description is None
        assert record.keywords is None
