"""Embedded image metadata engine (EXIF, IPTC, XMP)."""

from .exceptions import (
    InvalidSessionStateError,
    MetadataSyncError,
    ProfileStoreError,
    XmpParseError,
)
from .profile_store import ExifToolProfileStore, ProfileStore
from .profiles import ExifProfile, IptcProfile, ProfileKind, ProfileSet
from .reader import MetadataReader
from .record import MetadataRecord
from .session import MetadataSession, SessionState
from .writer import MetadataWriter, WriteReport
from .xmp_document import XmpDocument, XmpTag

__all__ = [
    'ExifProfile',
    'ExifToolProfileStore',
    'InvalidSessionStateError',
    'IptcProfile',
    'MetadataReader',
    'MetadataRecord',
    'MetadataSession',
    'MetadataSyncError',
    'MetadataWriter',
    'ProfileKind',
    'ProfileSet',
    'ProfileStore',
    'ProfileStoreError',
    'SessionState',
    'WriteReport',
    'XmpDocument',
    'XmpParseError',
    'XmpTag',
]
