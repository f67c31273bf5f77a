"""Error types raised by the metadata engine."""


class MetadataSyncError(Exception):
    """Base class for metadata engine errors."""


class XmpParseError(MetadataSyncError, ValueError):
    """Existing XMP bytes could not be parsed as an XMP document."""


class InvalidSessionStateError(MetadataSyncError, RuntimeError):
    """Session operation called out of order (e.g. write before read)."""


class ProfileStoreError(MetadataSyncError, OSError):
    """The profile store failed to read or commit a file."""

    def __init__(self, message: str, path=None, stderr: str = ""):
        super().__init__(message)
        self.path = path
        self.stderr = stderr
