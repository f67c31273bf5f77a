"""Clean-up rules for metadata previously written by a tagging model."""

from dataclasses import dataclass, field, replace
from typing import Dict, List
import logging

from ..metadata.record import MetadataRecord, is_blank, unique_casefold

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION_PREFIX = (
    "Okay, here's a detailed description of the image, broken down as requested:"
)


@dataclass
class TidyUpResult:
    """Outcome of tidying one record."""

    record: MetadataRecord
    changed: bool = False
    messages: List[str] = field(default_factory=list)


class TidyUpRules:
    """Trim boilerplate description prefixes and split comma-joined categories."""

    def __init__(
        self,
        trim_description_prefix: bool = True,
        description_prefix: str = DEFAULT_DESCRIPTION_PREFIX,
        split_categories: bool = True
    ):
        """Initialize tidy-up rules.

        Args:
            trim_description_prefix: Remove description_prefix from descriptions
            description_prefix: Boilerplate opening to remove (case-insensitive)
            split_categories: Split categories such as "Nature, Sky" in two
        """
        self.trim_description_prefix = trim_description_prefix
        self.description_prefix = description_prefix
        self.split_categories = split_categories

    @classmethod
    def from_config(cls, config: Dict) -> 'TidyUpRules':
        """Create rules from the ``tidy_up`` config section."""
        tidy_config = config.get('tidy_up', {})
        return cls(
            trim_description_prefix=tidy_config.get('trim_description_prefix', True),
            description_prefix=tidy_config.get('description_prefix', DEFAULT_DESCRIPTION_PREFIX),
            split_categories=tidy_config.get('split_categories', True),
        )

    def apply(self, record: MetadataRecord) -> TidyUpResult:
        """Apply all enabled rules to a record.

        Args:
            record: Record read from an image

        Returns:
            TidyUpResult with the cleaned record and whether it changed
        """
        result = TidyUpResult(record=record)

        if self.trim_description_prefix:
            self._trim_prefix(result)

        if self.split_categories:
            self._split_categories(result)

        if result.changed:
            logger.debug(f"Tidy-up: {' '.join(result.messages)}")

        return result

    def _trim_prefix(self, result: TidyUpResult) -> None:
        prefix = self.description_prefix
        record = result.record
        if is_blank(prefix) or is_blank(record.description):
            return

        trimmed = self.strip_prefix(record.description, prefix)
        if trimmed == record.description:
            return

        # The EXIF channel follows when it held the same text
        if record.exif_image_description == record.description:
            result.record = replace(record, description=trimmed, exif_image_description=trimmed)
        else:
            exif = self.strip_prefix(record.exif_image_description, prefix)
            result.record = replace(record, description=trimmed, exif_image_description=exif)

        result.changed = True
        result.messages.append("Description prefix trimmed.")

    def _split_categories(self, result: TidyUpResult) -> None:
        categories = result.record.categories
        if not categories:
            return

        split = []
        for category in categories:
            split.extend(part.strip() for part in category.split(','))
        tidied = unique_casefold(split)

        if tidied != tuple(categories):
            result.record = result.record.with_categories(tidied)
            result.changed = True
            result.messages.append("Categories split/tidied.")

    @staticmethod
    def strip_prefix(text, prefix: str):
        """Remove prefix from text ignoring case, leaving other text as is.

        Matching is done on casefolded characters one at a time, so letters
        whose folded form is longer (such as "İ" or "ß") still cut the
        text at the right place.
        """
        if text is None:
            return text

        target = prefix.casefold()
        folded = ''
        for end, char in enumerate(text, start=1):
            folded += char.casefold()
            if not target.startswith(folded):
                return text
            if folded == target:
                return text[end:].lstrip()
        return text
