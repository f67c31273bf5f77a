"""Profile stores: load and commit the metadata blocks of image files."""

import json
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
import logging

import exiftool

from .exceptions import ProfileStoreError
from .profiles import ExifProfile, IptcProfile, ProfileSet

logger = logging.getLogger(__name__)

MIN_EXIFTOOL_MAJOR = 11

# pyexiftool adds -n by default, which would also disable value conversion
# on writes (CodedCharacterSet=UTF8 must become ESC % G)
COMMON_ARGS = ['-G']

# IPTC text is written as UTF-8 and must be decoded the same way
IPTC_CHARSET_ARGS = ('-charset', 'iptc=UTF8')


class ProfileStore:
    """Capability to get and set the EXIF, IPTC and XMP blocks of a file.

    ``save`` must commit every profile change of one call at once, so that a
    failure leaves the file exactly as it was.
    """

    def start(self):
        """Acquire any resources the store needs (idempotent)."""

    def stop(self):
        """Release resources acquired by start()."""

    def load(self, image_path: Path) -> ProfileSet:
        raise NotImplementedError

    def save(self, image_path: Path, before: ProfileSet, after: ProfileSet) -> bool:
        """Commit the difference between two profile sets.

        Returns:
            True if the file was rewritten, False if nothing changed
        """
        raise NotImplementedError

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


class ExifToolProfileStore(ProfileStore):
    """Profile store backed by ExifTool in stay_open mode."""

    def __init__(self, exiftool_path: Optional[str] = None):
        """Initialize ExifTool profile store.

        Args:
            exiftool_path: Path to the exiftool executable. If None, searches PATH.
        """
        self.exiftool_path = exiftool_path or None
        self.et = None
        self.version = None
        self._verify_exiftool()

    def _verify_exiftool(self):
        """Run the executable once and record its version.

        Raises:
            RuntimeError: If ExifTool cannot be started
        """
        try:
            with exiftool.ExifTool(executable=self.exiftool_path) as et:
                self.version = et.execute('-ver').strip()
        except FileNotFoundError:
            raise RuntimeError(
                "ExifTool executable not found; install it or set exiftool.path in the config"
            ) from None
        except Exception as e:
            raise RuntimeError(f"Could not start ExifTool: {e}") from e

        major = self.version.partition('.')[0]
        if not major.isdigit():
            logger.warning(f"Unrecognized ExifTool version string: {self.version!r}")
        elif int(major) < MIN_EXIFTOOL_MAJOR:
            # -ec and -charset iptc= are needed for escaped UTF-8 writes
            logger.warning(
                f"ExifTool {self.version} is older than {MIN_EXIFTOOL_MAJOR}.0; "
                "escaped or non-ASCII values may be written incorrectly"
            )
        else:
            logger.info(f"Using ExifTool {self.version}")

    def start(self):
        """Start ExifTool process (no-op if already running)."""
        if not self.et:
            self.et = exiftool.ExifTool(
                executable=self.exiftool_path, common_args=list(COMMON_ARGS), encoding='utf-8'
            )
            self.et.run()
            logger.info("ExifTool started in stay_open mode")

    def stop(self):
        """Stop ExifTool process."""
        if self.et:
            self.et.terminate()
            self.et = None
            logger.info("ExifTool stopped")

    def _require_running(self):
        if not self.et:
            raise ProfileStoreError("ExifTool not started. Use context manager or call start()")

    def _execute(self, image_path: Path, *params: str) -> str:
        """Run one ExifTool command and fail on a non-zero exit status."""
        output = self.et.execute(*params)
        if self.et.last_status != 0:
            stderr = (self.et.last_stderr or '').strip()
            raise ProfileStoreError(
                f"ExifTool failed on {image_path.name}: {stderr or 'exit status ' + str(self.et.last_status)}",
                path=image_path,
                stderr=stderr,
            )
        return output

    def load(self, image_path: Path) -> ProfileSet:
        """Read EXIF and IPTC tags plus the raw XMP packet.

        Args:
            image_path: Path to image file

        Returns:
            ProfileSet with absent blocks set to None

        Raises:
            FileNotFoundError: If the image does not exist
            ProfileStoreError: If ExifTool cannot read the file
        """
        self._require_running()
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        output = self._execute(
            image_path, '-j', *IPTC_CHARSET_ARGS, '-EXIF:all', '-IPTC:all', str(image_path)
        )
        tags = json.loads(output)[0] if output.strip() else {}

        exif_values = {}
        iptc_entries = []
        for key, value in tags.items():
            group, _, name = key.partition(':')
            if group == 'EXIF':
                exif_values[name] = value if isinstance(value, str) else str(value)
            elif group == 'IPTC':
                # Repeated datasets come back as a list, single ones as a scalar
                for item in value if isinstance(value, list) else [value]:
                    iptc_entries.append((name, str(item)))

        # A missing XMP tag produces no output rather than an error
        xmp_text = self.et.execute('-b', '-XMP', str(image_path))
        xmp = xmp_text.encode('utf-8') if xmp_text.strip() else None

        logger.debug(
            f"Loaded {image_path.name}: {len(exif_values)} EXIF tags, "
            f"{len(iptc_entries)} IPTC entries, XMP {'present' if xmp else 'absent'}"
        )

        return ProfileSet(
            exif=ExifProfile(exif_values) if exif_values else None,
            iptc=IptcProfile(iptc_entries) if iptc_entries else None,
            xmp=xmp,
        )

    def save(self, image_path: Path, before: ProfileSet, after: ProfileSet) -> bool:
        """Write all profile changes in a single ExifTool command.

        ExifTool writes to a temporary file and renames it over the original,
        so either every change lands or none does.

        Raises:
            FileNotFoundError: If the image does not exist
            ProfileStoreError: If ExifTool reports a failure
        """
        self._require_running()
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        with tempfile.TemporaryDirectory(prefix='metadata-sync-') as staging:
            params = self._exif_params(before.exif, after.exif)
            params += self._iptc_params(before.iptc, after.iptc)
            params += self._xmp_params(before.xmp, after.xmp, Path(staging))

            if not params:
                logger.debug(f"No metadata changes for {image_path.name}")
                return False

            command = ['-overwrite_original', '-ec', *IPTC_CHARSET_ARGS] + params + [str(image_path)]
            result = self._execute(image_path, *command)

        if result and ('error' in result.lower() or 'warning' in result.lower()):
            logger.warning(f"ExifTool output for {image_path.name}: {result.strip()}")

        logger.debug(f"Committed {len(params)} metadata changes to {image_path.name}")
        return True

    @classmethod
    def _exif_params(cls, before: Optional[ExifProfile], after: Optional[ExifProfile]) -> List[str]:
        if after is None:
            return ['-EXIF:all='] if before is not None else []

        old = dict(before.items()) if before is not None else {}
        new = dict(after.items())
        return cls._tag_params('EXIF', {k: [v] for k, v in old.items()}, {k: [v] for k, v in new.items()})

    @classmethod
    def _iptc_params(cls, before: Optional[IptcProfile], after: Optional[IptcProfile]) -> List[str]:
        if after is None:
            return ['-IPTC:all='] if before is not None else []

        old = {tag: before.values(tag) for tag in before.tags()} if before is not None else {}
        new = {tag: after.values(tag) for tag in after.tags()}
        params = cls._tag_params('IPTC', old, new)
        if params:
            params.append('-IPTC:CodedCharacterSet=UTF8')
        return params

    @staticmethod
    def _xmp_params(before: Optional[bytes], after: Optional[bytes], staging: Path) -> List[str]:
        if before == after:
            return []
        if after is None:
            return ['-XMP:all=']

        packet = staging / 'packet.xmp'
        packet.write_bytes(after)
        return [f'-XMP<={packet}']

    @classmethod
    def _tag_params(cls, group: str, old: Dict[str, List], new: Dict[str, List]) -> List[str]:
        """Assignments turning old tag values into new ones.

        A tag assigned several values in one command is written as a list.
        """
        params = []
        for tag in list(dict.fromkeys(list(old) + list(new))):
            old_values = old.get(tag, [])
            new_values = new.get(tag, [])
            if old_values == new_values:
                continue
            if not new_values:
                params.append(f'-{group}:{tag}=')
                continue
            for value in new_values:
                params.append(f'-{group}:{tag}={cls._escape(value)}')
        return params

    @staticmethod
    def _escape(value) -> str:
        """Escape a value for ExifTool's ``-ec`` mode and its argument file.

        Args:
            value: Raw tag value

        Returns:
            Value with backslashes and line breaks C-escaped
        """
        text = str(value)
        return text.replace('\\', '\\\\').replace('\r', '\\r').replace('\n', '\\n')
