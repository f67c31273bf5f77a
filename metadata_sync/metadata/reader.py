"""Build a MetadataRecord from the profiles attached to an image."""

from typing import Callable, Dict, List, Optional, Sequence
import logging

from .exceptions import XmpParseError
from .profiles import ExifTag, IptcTag, ProfileKind, ProfileSet
from .record import MetadataRecord, is_blank, unique_casefold, unique_exact
from .xmp_document import DC_DESCRIPTION, DC_SUBJECT, DC_TYPE, XmpDocument

logger = logging.getLogger(__name__)


class MetadataReader:
    """Read the logical record out of EXIF, IPTC and XMP profiles.

    Missing profiles contribute nothing. A malformed XMP block is logged and
    treated as missing.
    """

    # First non-blank description wins
    DESCRIPTION_PRECEDENCE = (ProfileKind.XMP, ProfileKind.IPTC, ProfileKind.EXIF)
    DEFAULT_KEYWORD_SOURCE_ORDER = (ProfileKind.IPTC, ProfileKind.XMP)

    def __init__(self, keyword_source_order: Optional[Sequence[ProfileKind]] = None):
        """Initialize reader.

        Args:
            keyword_source_order: Profiles scanned for keywords, in order.
                When two keywords differ only by case, the casing found first
                is kept. Defaults to IPTC then XMP.
        """
        order = tuple(keyword_source_order or self.DEFAULT_KEYWORD_SOURCE_ORDER)
        if ProfileKind.EXIF in order:
            raise ValueError("EXIF carries no keywords")
        self.keyword_source_order = order

    @classmethod
    def from_config(cls, config: Dict) -> 'MetadataReader':
        """Create a reader from the ``metadata`` config section."""
        names = config.get('metadata', {}).get('keyword_source_order')
        order = [ProfileKind.parse(name) for name in names] if names else None
        return cls(keyword_source_order=order)

    def read(self, profiles: ProfileSet) -> MetadataRecord:
        """Extract the logical record.

        Args:
            profiles: Profiles loaded from an image

        Returns:
            MetadataRecord with description, EXIF description, keywords and
            categories
        """
        xmp = self._parse_xmp(profiles.xmp)

        description_sources: Dict[ProfileKind, Callable[[], Optional[str]]] = {
            ProfileKind.XMP: lambda: xmp.get_description(DC_DESCRIPTION) if xmp else None,
            ProfileKind.IPTC: lambda: profiles.iptc.first(IptcTag.CAPTION) if profiles.iptc else None,
            ProfileKind.EXIF: lambda: self._exif_description(profiles),
        }
        description = None
        for kind in self.DESCRIPTION_PRECEDENCE:
            value = description_sources[kind]()
            if not is_blank(value):
                description = value
                break

        keyword_sources: Dict[ProfileKind, Callable[[], List[str]]] = {
            ProfileKind.IPTC: lambda: profiles.iptc.values(IptcTag.KEYWORD) if profiles.iptc else [],
            ProfileKind.XMP: lambda: xmp.get_bag(DC_SUBJECT) if xmp else [],
        }
        keywords = []
        for kind in self.keyword_source_order:
            keywords.extend(keyword_sources[kind]())

        categories = xmp.get_bag(DC_TYPE) if xmp else []

        record = MetadataRecord(
            description=description,
            exif_image_description=self._exif_description(profiles),
            keywords=unique_casefold(keywords),
            categories=unique_exact(categories),
        )
        logger.debug(
            f"Read metadata from {[kind.value for kind in profiles.present()]}: "
            f"{len(record.keywords)} keywords, {len(record.categories)} categories"
        )
        return record

    @staticmethod
    def _exif_description(profiles: ProfileSet) -> Optional[str]:
        if profiles.exif is None:
            return None
        value = profiles.exif.get(ExifTag.IMAGE_DESCRIPTION)
        return None if is_blank(value) else str(value)

    @staticmethod
    def _parse_xmp(data: Optional[bytes]) -> Optional[XmpDocument]:
        if data is None:
            return None
        try:
            return XmpDocument.parse(data)
        except XmpParseError as e:
            logger.warning(f"Ignoring unparsable XMP block: {e}")
            return None
