"""Read-modify-write editing session over one image file."""

from enum import Enum
from pathlib import Path
from typing import Optional, Union
import logging

from PIL import Image

from .exceptions import InvalidSessionStateError
from .profile_store import ExifToolProfileStore, ProfileStore
from .profiles import ProfileSet
from .reader import MetadataReader
from .record import MetadataRecord
from .writer import MetadataWriter, WriteReport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNREAD = 'unread'
    READ = 'read'
    CLOSED = 'closed'


class MetadataSession:
    """Edit the embedded metadata of a single image.

    Usage::

        with MetadataSession(path) as session:
            record = session.read()
            session.write(record.with_description("Sunset over the bay"))

    A session is not thread-safe. Run one session per file; sessions never
    share state, so different files may be processed in parallel.
    """

    def __init__(
        self,
        image_path: Union[str, Path],
        store: Optional[ProfileStore] = None,
        reader: Optional[MetadataReader] = None,
        writer: Optional[MetadataWriter] = None,
        verify_image: bool = True,
    ):
        """Initialize session.

        Args:
            image_path: Image file to edit
            store: Profile store to use. When None, the session creates an
                ExifToolProfileStore and owns it.
            reader: Metadata reader (default settings when None)
            writer: Metadata writer (default when None)
            verify_image: Check with Pillow that the file decodes as an image
                before reading its profiles
        """
        self.image_path = Path(image_path)
        self._owns_store = store is None
        self.store = store if store is not None else ExifToolProfileStore()
        self.reader = reader or MetadataReader()
        self.writer = writer or MetadataWriter()
        self.verify_image = verify_image

        self._state = SessionState.UNREAD
        self._profiles: Optional[ProfileSet] = None
        self._record: Optional[MetadataRecord] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def record(self) -> Optional[MetadataRecord]:
        """Record reflecting the file as last read or saved."""
        return self._record

    @property
    def profiles(self) -> Optional[ProfileSet]:
        return self._profiles

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def open(self):
        """Start the profile store."""
        self._check_not_closed()
        self.store.start()

    def close(self):
        """Release the profile store if this session owns it."""
        if self._state is SessionState.CLOSED:
            return
        if self._owns_store:
            self.store.stop()
        self._state = SessionState.CLOSED
        self._profiles = None

    def read(self) -> MetadataRecord:
        """Load the image's profiles and extract its record.

        Returns:
            MetadataRecord of the file

        Raises:
            FileNotFoundError: If the image does not exist
            PIL.UnidentifiedImageError: If the file is not a readable image
        """
        self._check_not_closed()
        if self.verify_image:
            self._verify_image()

        self.store.start()
        self._profiles = self.store.load(self.image_path)
        self._record = self.reader.read(self._profiles)
        self._state = SessionState.READ

        logger.debug(f"Read {self.image_path.name}: {self._record}")
        return self._record

    def write(self, record: MetadataRecord) -> WriteReport:
        """Synchronize a record into the file's profiles and save once.

        On failure the session keeps its previous in-memory state and the
        write may be retried.

        Args:
            record: Desired metadata

        Returns:
            WriteReport describing the applied changes and any warnings

        Raises:
            InvalidSessionStateError: If read() has not been called
        """
        if self._state is not SessionState.READ:
            raise InvalidSessionStateError(
                f"Cannot write {self.image_path.name} in state '{self._state.value}'. "
                "Call read() first."
            )

        report = self.writer.apply(self._profiles, record)
        for warning in report.warnings:
            logger.warning(f"{self.image_path.name}: {warning}")

        if not report.changed:
            logger.debug(f"No metadata changes for {self.image_path.name}")
            return report

        self.store.save(self.image_path, self._profiles, report.profiles)

        # Reload so the in-memory model matches what is now on disk
        self._profiles = self.store.load(self.image_path)
        self._record = self.reader.read(self._profiles)
        logger.info(f"Saved metadata to {self.image_path.name}")
        return report

    def _check_not_closed(self):
        if self._state is SessionState.CLOSED:
            raise InvalidSessionStateError(f"Session for {self.image_path.name} is closed")

    def _verify_image(self):
        with Image.open(self.image_path) as image:
            image.verify()
