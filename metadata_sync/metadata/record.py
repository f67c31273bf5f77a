"""Format-agnostic metadata record exchanged with the reader and writer."""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Tuple


def is_blank(value: Optional[str]) -> bool:
    """Return True for None, empty or whitespace-only strings."""
    return value is None or not str(value).strip()


def unique_casefold(values: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate strings ignoring case, keeping the first occurrence.

    Args:
        values: Strings in scan order

    Returns:
        Tuple of non-blank values with case-insensitive duplicates removed
    """
    seen = set()
    unique = []
    for value in values:
        if is_blank(value):
            continue
        value = str(value).strip()
        key = value.casefold()
        if key not in seen:
            seen.add(key)
            unique.append(value)
    return tuple(unique)


def unique_exact(values: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate strings by exact match, keeping order and dropping blanks."""
    unique = {}
    for value in values:
        if not is_blank(value):
            unique[str(value)] = None
    return tuple(unique)


@dataclass(frozen=True)
class MetadataRecord:
    """Logical metadata of one image.

    ``None`` in a field means the record has nothing to say about it and the
    writer leaves the matching tags alone. A blank description or an empty
    keyword/category collection is an explicit clear.

    The EXIF description is its own channel: the writer removes the EXIF tag
    whenever ``exif_image_description`` is blank or ``None``.
    """

    description: Optional[str] = None
    exif_image_description: Optional[str] = None
    keywords: Optional[Tuple[str, ...]] = None
    categories: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        # Normalize collections so equality and writes are deterministic
        if self.keywords is not None:
            object.__setattr__(self, 'keywords', unique_casefold(self.keywords))
        if self.categories is not None:
            object.__setattr__(self, 'categories', unique_exact(self.categories))

    @property
    def is_empty(self) -> bool:
        """True when the record carries no values at all."""
        return (
            is_blank(self.description)
            and is_blank(self.exif_image_description)
            and not self.keywords
            and not self.categories
        )

    def with_description(self, text: Optional[str], sync_exif: bool = True) -> 'MetadataRecord':
        """Return a copy with the unified description replaced.

        Args:
            text: New description
            sync_exif: Also copy the text into the EXIF description channel

        Returns:
            New MetadataRecord
        """
        if sync_exif:
            return replace(self, description=text, exif_image_description=text)
        return replace(self, description=text)

    def with_keywords(self, keywords: Optional[Iterable[str]]) -> 'MetadataRecord':
        """Return a copy with keywords replaced (None leaves them unspecified)."""
        return replace(self, keywords=None if keywords is None else tuple(keywords))

    def with_categories(self, categories: Optional[Iterable[str]]) -> 'MetadataRecord':
        """Return a copy with categories replaced (None leaves them unspecified)."""
        return replace(self, categories=None if categories is None else tuple(categories))

    def to_dict(self) -> Dict:
        """Plain dict representation for JSON output."""
        return {
            'description': self.description,
            'exif_image_description': self.exif_image_description,
            'keywords': list(self.keywords) if self.keywords is not None else None,
            'categories': list(self.categories) if self.categories is not None else None,
        }
