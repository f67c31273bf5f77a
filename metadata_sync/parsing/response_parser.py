"""Split a vision model's free-text answer into description, keywords and categories."""

from dataclasses import dataclass, field
from typing import List, Optional
import logging
import re

from ..metadata.record import MetadataRecord, is_blank

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_DESCRIPTION = "Model returned an empty response."

# Section header, optionally bolded (**Keywords:**), up to a blank line, the
# next section header or the end of the text
_SECTION_TEMPLATE = (
    r'\**[ \t]*{name}[ \t]*:[ \t]*\**(.*?)'
    r'(?:\n[ \t]*\n|\Z|(?=\n[ \t]*\**[ \t]*(?:Keywords|Categories)[ \t]*:))'
)
CATEGORIES_PATTERN = re.compile(_SECTION_TEMPLATE.format(name='Categories'), re.IGNORECASE | re.DOTALL)
KEYWORDS_PATTERN = re.compile(_SECTION_TEMPLATE.format(name='Keywords'), re.IGNORECASE | re.DOTALL)

_BULLET = re.compile(r'^\s*[-*•]\s*')
DESCRIPTION_LABEL = re.compile(r'^\s*\**[ \t]*Description[ \t]*:[ \t]*\**\s*', re.IGNORECASE)


@dataclass
class ParsedResponse:
    """Structured content extracted from a model response."""

    description: str = ''
    keywords: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    raw_response: str = ''
    successfully_parsed: bool = False

    def to_record(self, sync_exif: bool = True) -> MetadataRecord:
        """Convert to a MetadataRecord ready for writing.

        Args:
            sync_exif: Also write the description to the EXIF channel

        Returns:
            MetadataRecord; fields the response did not provide are left
            unspecified so existing values survive the write
        """
        description: Optional[str] = self.description if self.successfully_parsed else None
        if is_blank(description):
            description = None
        return MetadataRecord(
            description=description,
            exif_image_description=description if sync_exif else None,
            keywords=tuple(self.keywords) if self.keywords else None,
            categories=tuple(self.categories) if self.categories else None,
        )


def _split_items(block: str, separators: str) -> List[str]:
    """Split a section body into trimmed, non-empty items.

    Args:
        block: Text following a section header
        separators: Extra in-line separator characters besides newlines

    Returns:
        List of items with list bullets removed
    """
    items = []
    for line in block.splitlines():
        line = _BULLET.sub('', line)
        parts = re.split(f"[{re.escape(separators)}]", line) if separators else [line]
        for part in parts:
            part = part.strip().strip('*').strip()
            if part:
                items.append(part)
    return items


def parse_response(response_text: Optional[str]) -> ParsedResponse:
    """Parse a model response into description, keywords and categories.

    ``Categories:`` and ``Keywords:`` sections are extracted (one item per
    line or list bullet; keywords may also be comma separated) and removed
    from the text. Whatever remains is the description. A response without
    sections is taken whole as the description.

    Args:
        response_text: Raw model output

    Returns:
        ParsedResponse
    """
    parsed = ParsedResponse(raw_response=response_text or '')
    if is_blank(response_text):
        parsed.description = EMPTY_RESPONSE_DESCRIPTION
        return parsed

    description = response_text

    categories_match = CATEGORIES_PATTERN.search(response_text)
    if categories_match:
        parsed.categories = _split_items(categories_match.group(1), '')
        description = description.replace(categories_match.group(0), '')

    keywords_match = KEYWORDS_PATTERN.search(response_text)
    if keywords_match:
        parsed.keywords = _split_items(keywords_match.group(1), ',;')
        description = description.replace(keywords_match.group(0), '')

    parsed.description = DESCRIPTION_LABEL.sub('', description.strip()).strip()

    if not parsed.description and not parsed.keywords and not parsed.categories:
        # Sections were present but empty; keep the raw text
        parsed.description = response_text.strip()

    # Text without sections is still a usable description
    parsed.successfully_parsed = True

    logger.debug(
        f"Parsed response: {len(parsed.description)} chars description, "
        f"{len(parsed.keywords)} keywords, {len(parsed.categories)} categories"
    )
    return parsed
