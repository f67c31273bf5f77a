"""Pytest configuration and shared fixtures."""

import threading
from pathlib import Path

import pytest
from PIL import Image

from metadata_sync.metadata import (
    ExifProfile,
    IptcProfile,
    ProfileSet,
    ProfileStore,
    ProfileStoreError,
    XmpDocument,
)
from metadata_sync.metadata.xmp_document import DC_DESCRIPTION, DC_SUBJECT, DC_TYPE


class InMemoryProfileStore(ProfileStore):
    """Profile store keeping profile sets in a dict keyed by resolved path."""

    def __init__(self, disk=None):
        self.disk = disk if disk is not None else {}
        self.started = False
        self.saves = 0
        self.fail_next_save = False
        self._lock = threading.Lock()

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def load(self, image_path):
        with self._lock:
            return self.disk.get(Path(image_path).resolve(), ProfileSet())

    def save(self, image_path, before, after):
        if self.fail_next_save:
            self.fail_next_save = False
            raise ProfileStoreError("simulated write failure", path=image_path)
        if before == after:
            return False
        with self._lock:
            self.disk[Path(image_path).resolve()] = after
            self.saves += 1
        return True

    def put(self, image_path, profiles):
        """Seed the stored profiles of a file."""
        self.disk[Path(image_path).resolve()] = profiles


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def memory_store():
    """In-memory profile store."""
    return InMemoryProfileStore()


@pytest.fixture
def store_factory():
    """Factory of in-memory stores sharing one backing dict."""
    disk = {}
    stores = []

    def factory():
        store = InMemoryProfileStore(disk)
        stores.append(store)
        return store

    factory.disk = disk
    factory.stores = stores
    return factory


@pytest.fixture
def make_image(tmp_path):
    """Create small JPEG files with Pillow."""

    def _make(name="photo.jpg", color="red"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new('RGB', (16, 16), color).save(path, 'JPEG')
        return path

    return _make


@pytest.fixture
def sample_image(make_image):
    """A single JPEG with no metadata."""
    return make_image()


@pytest.fixture
def make_xmp():
    """Build XMP packets carrying description, keywords and categories."""

    def _make(description=None, keywords=(), categories=()):
        document = XmpDocument.new()
        if description is not None:
            document.set_description(DC_DESCRIPTION, description)
        document.set_bag(DC_SUBJECT, keywords)
        document.set_bag(DC_TYPE, categories)
        return document.serialize()

    return _make


@pytest.fixture
def creator_tool_xmp():
    """Packet written by another tool, with content this engine does not manage."""
    return b'''<?xpacket begin="\xef\xbb\xbf" id="W5M0MpCehiHzreSzNTczkc9d"?>
<x:xmpmeta xmlns:x="adobe:ns:meta/" x:xmptk="Adobe XMP Core 5.6">
  <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
    <rdf:Description rdf:about=""
        xmlns:xmp="http://ns.adobe.com/xap/1.0/"
        xmlns:dc="http://purl.org/dc/elements/1.1/">
      <xmp:CreatorTool>Lightroom</xmp:CreatorTool>
      <dc:description>
        <rdf:Alt>
          <rdf:li xml:lang="x-default">Old caption</rdf:li>
        </rdf:Alt>
      </dc:description>
    </rdf:Description>
  </rdf:RDF>
</x:xmpmeta>
<?xpacket end="w"?>'''


@pytest.fixture
def full_profiles(make_xmp):
    """Profiles holding description and keywords in every block."""
    return ProfileSet(
        exif=ExifProfile({'ImageDescription': 'Exif text', 'Make': 'Canon'}),
        iptc=IptcProfile([
            ('Caption-Abstract', 'Iptc text'),
            ('Keywords', 'Cat'),
            ('Keywords', 'dog'),
        ]),
        xmp=make_xmp('Xmp text', keywords=['cat', 'Bird'], categories=['Animals']),
    )


@pytest.fixture
def sample_config(tmp_path):
    """Provide a sample configuration for testing."""
    return {
        'exiftool': {
            'path': ''
        },
        'metadata': {
            'keyword_source_order': ['iptc', 'xmp'],
            'sync_exif_description': True,
            'verify_images': True
        },
        'tidy_up': {
            'trim_description_prefix': True,
            'description_prefix': "Okay, here's a detailed description of the image, broken down as requested:",
            'split_categories': True
        },
        'workflow': {
            'parallel_workers': 2
        },
        'logging': {
            'level': 'INFO',
            'file': str(tmp_path / 'logs' / 'test.log'),
            'console_output': False
        }
    }
