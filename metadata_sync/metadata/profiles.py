"""In-memory models of the EXIF, IPTC and XMP profile blocks of an image."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class ProfileKind(Enum):
    """Metadata block kinds embedded in an image file."""

    EXIF = 'exif'
    IPTC = 'iptc'
    XMP = 'xmp'

    @classmethod
    def parse(cls, name: str) -> 'ProfileKind':
        """Look up a kind by its case-insensitive name.

        Raises:
            ValueError: If the name is not a known profile kind
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown profile kind: {name!r}") from None


class ExifTag:
    """EXIF tag names as reported by ExifTool."""

    IMAGE_DESCRIPTION = 'ImageDescription'


class IptcTag:
    """IPTC IIM dataset names as reported by ExifTool."""

    CAPTION = 'Caption-Abstract'
    KEYWORD = 'Keywords'


class ExifProfile:
    """EXIF block as an ordered tag -> value mapping."""

    # Values ExifTool fills in whenever it creates an EXIF block, in both the
    # converted and the numeric form. Any other value is real image data.
    DEFAULT_VALUES = {
        'XResolution': frozenset({'72'}),
        'YResolution': frozenset({'72'}),
        'ResolutionUnit': frozenset({'inches', '2'}),
        'YCbCrPositioning': frozenset({'Centered', '1'}),
        'ExifVersion': frozenset({'0220', '0221', '0230', '0231', '0232'}),
        'ComponentsConfiguration': frozenset({'Y, Cb, Cr, -', '1 2 3 0'}),
        'FlashpixVersion': frozenset({'0100'}),
        'ColorSpace': frozenset({'Uncalibrated', '65535'}),
    }

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def get(self, tag: str) -> Optional[Any]:
        return self._values.get(tag)

    def set(self, tag: str, value: Any) -> None:
        self._values[tag] = value

    def remove(self, tag: str) -> None:
        self._values.pop(tag, None)

    def items(self):
        return self._values.items()

    def is_default(self, tag: str) -> bool:
        """Whether a tag holds the value ExifTool writes on its own."""
        defaults = self.DEFAULT_VALUES.get(tag)
        return defaults is not None and str(self._values.get(tag)).strip() in defaults

    def meaningful_count(self) -> int:
        """Number of tags other than ExifTool's own defaults."""
        return sum(1 for tag in self._values if not self.is_default(tag))

    def copy(self) -> 'ExifProfile':
        return ExifProfile(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        return isinstance(other, ExifProfile) and self._values == other._values

    def __repr__(self) -> str:
        return f"ExifProfile({self._values!r})"


class IptcProfile:
    """IPTC block as an ordered list of (tag, value) entries.

    IPTC datasets may repeat (one ``Keywords`` entry per keyword), so the
    profile keeps every entry instead of a mapping.
    """

    # Envelope and version records carry no user metadata
    STRUCTURAL_TAGS = frozenset({
        'CodedCharacterSet', 'ApplicationRecordVersion', 'EnvelopeRecordVersion',
    })

    def __init__(self, entries: Optional[List[Tuple[str, str]]] = None):
        self._entries: List[Tuple[str, str]] = list(entries or [])

    def first(self, tag: str) -> Optional[str]:
        """First value of a tag, or None if absent."""
        for entry_tag, value in self._entries:
            if entry_tag == tag:
                return value
        return None

    def values(self, tag: str) -> List[str]:
        """All values of a tag in file order."""
        return [value for entry_tag, value in self._entries if entry_tag == tag]

    def replace(self, tag: str, values) -> None:
        """Replace every entry of a tag, keeping the position of the first one.

        Args:
            tag: Dataset name
            values: New values; empty removes the tag
        """
        new_entries = [(tag, value) for value in values]
        entries = []
        inserted = False
        for entry in self._entries:
            if entry[0] != tag:
                entries.append(entry)
            elif not inserted:
                entries.extend(new_entries)
                inserted = True
        if not inserted:
            entries.extend(new_entries)
        self._entries = entries

    def meaningful_count(self) -> int:
        """Number of entries that are not envelope/version records."""
        return sum(1 for tag, _ in self._entries if tag not in self.STRUCTURAL_TAGS)

    def tags(self) -> List[str]:
        """Distinct tag names in first-seen order."""
        return list(dict.fromkeys(tag for tag, _ in self._entries))

    def copy(self) -> 'IptcProfile':
        return IptcProfile(self._entries)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        return isinstance(other, IptcProfile) and self._entries == other._entries

    def __repr__(self) -> str:
        return f"IptcProfile({self._entries!r})"


@dataclass(frozen=True)
class ProfileSet:
    """Snapshot of the profiles attached to one image.

    A slot set to None means the image carries no block of that kind.
    """

    exif: Optional[ExifProfile] = None
    iptc: Optional[IptcProfile] = None
    xmp: Optional[bytes] = None

    def get(self, kind: ProfileKind):
        """Profile stored for a kind."""
        if kind is ProfileKind.EXIF:
            return self.exif
        if kind is ProfileKind.IPTC:
            return self.iptc
        if kind is ProfileKind.XMP:
            return self.xmp
        raise ValueError(f"Unhandled profile kind: {kind}")

    def present(self) -> List[ProfileKind]:
        """Kinds with a block attached, in enum order."""
        return [kind for kind in ProfileKind if self.get(kind) is not None]
