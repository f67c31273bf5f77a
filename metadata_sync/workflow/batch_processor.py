"""Run metadata sessions over many image files."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
import logging
import threading

from ..metadata import (
    ExifToolProfileStore,
    MetadataReader,
    MetadataRecord,
    MetadataSession,
    MetadataWriter,
    ProfileStore,
)

logger = logging.getLogger(__name__)

# Receives the record read from a file and returns the record to write,
# or None to leave the file alone
RecordOperation = Callable[[Path, MetadataRecord], Optional[MetadataRecord]]


class BatchProcessor:
    """Apply a record operation to many files, one session per file.

    Each worker thread owns its own profile store, and every file gets its
    own session, so no mutable state is shared between files.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        store_factory: Optional[Callable[[], ProfileStore]] = None,
        max_workers: Optional[int] = None
    ):
        """Initialize batch processor.

        Args:
            config: Configuration dictionary (exiftool, metadata, workflow sections)
            store_factory: Creates a profile store per worker thread. Defaults
                to an ExifToolProfileStore using the configured executable.
            max_workers: Number of parallel workers (default from config, else 1)
        """
        config = config or {}
        exiftool_path = config.get('exiftool', {}).get('path') or None

        self.store_factory = store_factory or (lambda: ExifToolProfileStore(exiftool_path))
        self.max_workers = max_workers or config.get('workflow', {}).get('parallel_workers', 1)
        self.reader = MetadataReader.from_config(config)
        self.writer = MetadataWriter()
        self.verify_images = config.get('metadata', {}).get('verify_images', True)

        self._local = threading.local()
        self._stores: List[ProfileStore] = []
        self._stores_lock = threading.Lock()

        logger.info(f"BatchProcessor initialized with {self.max_workers} workers")

    def _thread_store(self) -> ProfileStore:
        store = getattr(self._local, 'store', None)
        if store is None:
            store = self.store_factory()
            store.start()
            self._local.store = store
            with self._stores_lock:
                self._stores.append(store)
        return store

    def _close_stores(self):
        with self._stores_lock:
            stores, self._stores = self._stores, []
        for store in stores:
            store.stop()
        # Worker threads are gone; fresh ones get fresh stores
        self._local = threading.local()

    def process_file(self, image_path: Path, operation: RecordOperation) -> Dict:
        """Read a file, apply the operation and write the result back.

        Args:
            image_path: Image to process
            operation: Record operation

        Returns:
            Dict with 'image_path', 'status' ('success', 'unchanged', 'failed'),
            'warnings' and 'error'
        """
        result = {
            'image_path': str(image_path),
            'status': 'unchanged',
            'warnings': [],
            'error': None
        }

        try:
            session = MetadataSession(
                image_path,
                store=self._thread_store(),
                reader=self.reader,
                writer=self.writer,
                verify_image=self.verify_images
            )
            with session:
                record = session.read()
                updated = operation(Path(image_path), record)
                if updated is None:
                    return result

                report = session.write(updated)
                result['warnings'] = list(report.warnings)
                if report.changed:
                    result['status'] = 'success'

        except Exception as e:
            logger.error(f"Failed to process {Path(image_path).name}: {e}", exc_info=True)
            result['status'] = 'failed'
            result['error'] = str(e)

        return result

    def process_batch(
        self,
        image_paths: Sequence[Path],
        operation: RecordOperation,
        progress_callback=None,
        cancel_event: Optional[threading.Event] = None
    ) -> Dict:
        """Process multiple files in parallel.

        Args:
            image_paths: Files to process; each must resolve to a distinct path
            operation: Record operation applied to every file
            progress_callback: Optional callback(current, total)
            cancel_event: When set, files not yet started are skipped

        Returns:
            Dict with 'success', 'unchanged', 'failed', 'cancelled', 'total'
            counts and per-file 'results'

        Raises:
            ValueError: If two entries resolve to the same file
        """
        paths = [Path(p) for p in image_paths]
        resolved = [p.resolve() for p in paths]
        if len(set(resolved)) != len(resolved):
            raise ValueError("Batch contains the same file more than once")

        total = len(paths)
        summary = {
            'success': 0,
            'unchanged': 0,
            'failed': 0,
            'cancelled': 0,
            'total': total,
            'results': []
        }

        if total == 0:
            return summary

        def run(path: Path) -> Dict:
            # Cancellation is honored between files, never mid-session
            if cancel_event is not None and cancel_event.is_set():
                return {'image_path': str(path), 'status': 'cancelled', 'warnings': [], 'error': None}
            return self.process_file(path, operation)

        logger.info(f"Processing {total} images with {self.max_workers} workers...")
        completed = 0

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(run, path): path for path in paths}

                for future in as_completed(futures):
                    result = future.result()
                    summary[result['status']] += 1
                    summary['results'].append(result)

                    completed += 1
                    if progress_callback:
                        progress_callback(completed, total)

                    if completed % 100 == 0:
                        logger.info(f"Progress: {completed}/{total} ({completed/total*100:.1f}%)")
        finally:
            self._close_stores()

        logger.info(
            f"Batch complete: {summary['success']} updated, "
            f"{summary['unchanged']} unchanged, {summary['failed']} failed, "
            f"{summary['cancelled']} cancelled"
        )

        return summary
