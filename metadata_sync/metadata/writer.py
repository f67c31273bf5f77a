"""Synchronize a MetadataRecord into EXIF, IPTC and XMP profiles."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging

from .exceptions import XmpParseError
from .profiles import ExifProfile, ExifTag, IptcProfile, IptcTag, ProfileKind, ProfileSet
from .record import MetadataRecord, is_blank
from .xmp_document import DC_DESCRIPTION, DC_SUBJECT, DC_TYPE, XmpDocument

logger = logging.getLogger(__name__)

XMP_REPLACED_WARNING = "unparsable XMP block replaced"


@dataclass(frozen=True)
class WriteReport:
    """Outcome of applying a record to a set of profiles.

    Attributes:
        before: Profiles the record was applied to
        profiles: Resulting profiles (None slots are removed blocks)
        warnings: Caller-visible recovery notices
    """

    before: ProfileSet
    profiles: ProfileSet
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.profiles != self.before

    @property
    def removed(self) -> List[ProfileKind]:
        """Profiles present before and dropped by the write."""
        return [
            kind for kind in ProfileKind
            if self.before.get(kind) is not None and self.profiles.get(kind) is None
        ]


class MetadataWriter:
    """Compute the profiles that carry a MetadataRecord.

    The writer never touches disk: it returns new profiles and leaves the
    commit to a ProfileStore, so a failed commit cannot leave one profile
    written and another not.
    """

    def apply(self, profiles: ProfileSet, record: MetadataRecord) -> WriteReport:
        """Apply a record to loaded profiles.

        Args:
            profiles: Profiles currently attached to the image
            record: Desired logical metadata

        Returns:
            WriteReport with the updated profiles
        """
        warnings: List[str] = []

        updated = ProfileSet(
            exif=self._update_exif(profiles.exif, record),
            iptc=self._update_iptc(profiles.iptc, record),
            xmp=self._update_xmp(profiles.xmp, record, warnings),
        )
        report = WriteReport(before=profiles, profiles=updated, warnings=tuple(warnings))

        for kind in report.removed:
            logger.info(f"Removing empty {kind.value.upper()} profile")

        return report

    def _update_exif(self, exif: Optional[ExifProfile], record: MetadataRecord) -> Optional[ExifProfile]:
        value = record.exif_image_description

        if is_blank(value):
            if exif is None:
                return None
            exif = exif.copy()
            exif.remove(ExifTag.IMAGE_DESCRIPTION)
        else:
            exif = exif.copy() if exif is not None else ExifProfile()
            exif.set(ExifTag.IMAGE_DESCRIPTION, value)

        return exif if exif.meaningful_count() > 0 else None

    def _update_iptc(self, iptc: Optional[IptcProfile], record: MetadataRecord) -> Optional[IptcProfile]:
        if record.description is None and record.keywords is None:
            return iptc

        has_content = not is_blank(record.description) or bool(record.keywords)
        if iptc is None and not has_content:
            return None

        iptc = iptc.copy() if iptc is not None else IptcProfile()

        if record.description is not None:
            # IPTC holds a single caption
            caption = [] if is_blank(record.description) else [record.description]
            iptc.replace(IptcTag.CAPTION, caption)

        if record.keywords is not None:
            iptc.replace(IptcTag.KEYWORD, record.keywords)

        return iptc if iptc.meaningful_count() > 0 else None

    def _update_xmp(self, data: Optional[bytes], record: MetadataRecord, warnings: List[str]) -> Optional[bytes]:
        touches = (
            record.description is not None
            or record.keywords is not None
            or record.categories is not None
        )
        if not touches:
            return data

        has_content = (
            not is_blank(record.description)
            or bool(record.keywords)
            or bool(record.categories)
        )

        if data is None:
            if not has_content:
                return None
            document = XmpDocument.new()
        else:
            try:
                document = XmpDocument.parse(data)
            except XmpParseError as e:
                if not has_content:
                    logger.warning(f"Leaving unparsable XMP block untouched: {e}")
                    return data
                logger.warning(f"Replacing unparsable XMP block with a new document: {e}")
                warnings.append(XMP_REPLACED_WARNING)
                document = XmpDocument.new()

        if record.description is not None:
            if is_blank(record.description):
                document.remove_tag(DC_DESCRIPTION)
            else:
                document.set_description(DC_DESCRIPTION, record.description)

        for tag, values in ((DC_SUBJECT, record.keywords), (DC_TYPE, record.categories)):
            if values is None:
                continue
            if any(not is_blank(value) for value in values):
                document.set_bag(tag, values)
            else:
                document.remove_tag(tag)

        if not document.has_content():
            return None

        return document.serialize()
