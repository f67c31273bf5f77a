"""Minimal XMP (RDF/XML) document model for the properties this engine edits.

Only two value shapes are handled:

- localized string: ``dc:description/rdf:Alt/rdf:li[@xml:lang="x-default"]``
- unordered bag: ``dc:subject/rdf:Bag/rdf:li*`` and ``dc:type/rdf:Bag/rdf:li*``

Everything else in the packet is carried through an edit untouched.
"""

import io
import re
import xml.etree.ElementTree as ET
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple
from xml.sax.saxutils import unescape
import logging

from .exceptions import XmpParseError
from .record import is_blank

logger = logging.getLogger(__name__)

# XMP namespace definitions
NAMESPACES = {
    'x': 'adobe:ns:meta/',
    'rdf': 'http://www.w3.org/1999/02/22-rdf-syntax-ns#',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'xmp': 'http://ns.adobe.com/xap/1.0/',
    'photoshop': 'http://ns.adobe.com/photoshop/1.0/',
    'lr': 'http://ns.adobe.com/lightroom/1.0/',
}

XML_NS = 'http://www.w3.org/XML/1998/namespace'

for _prefix, _uri in NAMESPACES.items():
    ET.register_namespace(_prefix, _uri)

X_XMPMETA = f"{{{NAMESPACES['x']}}}xmpmeta"
X_XMPTK = f"{{{NAMESPACES['x']}}}xmptk"
RDF_RDF = f"{{{NAMESPACES['rdf']}}}RDF"
RDF_DESCRIPTION = f"{{{NAMESPACES['rdf']}}}Description"
RDF_ABOUT = f"{{{NAMESPACES['rdf']}}}about"
RDF_ALT = f"{{{NAMESPACES['rdf']}}}Alt"
RDF_BAG = f"{{{NAMESPACES['rdf']}}}Bag"
RDF_LI = f"{{{NAMESPACES['rdf']}}}li"
XML_LANG = f"{{{XML_NS}}}lang"

DEFAULT_LANGUAGE = 'x-default'
XMP_TOOLKIT = 'metadata-sync'

XPACKET_HEADER = '<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>'
XPACKET_TRAILER = '<?xpacket end="w"?>'

_XPACKET_PATTERN = re.compile(rb'<\?xpacket[^>]*\?>')
_RESERVED_PREFIX = re.compile(r'ns\d+$')
_RESERVED_NAMESPACES = (NAMESPACES['rdf'], NAMESPACES['x'])
_KNOWN_URIS = frozenset(NAMESPACES.values())

# Serialized markup: attribute values and text never hold a raw < or >
_MARKUP = re.compile(r'<[^>]*>')
_QUOTED = re.compile(r'("[^"]*")')
_DECLARATION = re.compile(r' xmlns:([\w.-]+)="([^"]*)"')
_GENERATED_NAME = re.compile(r'(?:(?<=[<\s/])(?=ns\d+:)|(?<=xmlns:)(?=ns\d+=))(ns\d+)')


class XmpTag(NamedTuple):
    """Identity of an XMP property: namespace URI plus local name."""

    namespace: str
    local_name: str

    @property
    def clark(self) -> str:
        """ElementTree ``{uri}local`` form."""
        return f"{{{self.namespace}}}{self.local_name}"

    def __str__(self) -> str:
        for prefix, uri in NAMESPACES.items():
            if uri == self.namespace:
                return f"{prefix}:{self.local_name}"
        return self.clark


DC_DESCRIPTION = XmpTag(NAMESPACES['dc'], 'description')
DC_SUBJECT = XmpTag(NAMESPACES['dc'], 'subject')
DC_TYPE = XmpTag(NAMESPACES['dc'], 'type')


def _namespace_of(tag: str) -> str:
    if tag.startswith('{'):
        return tag[1:].split('}', 1)[0]
    return ''


def _namespaces_used(element: ET.Element) -> Set[str]:
    """Namespace URIs of an element's tag and attribute names."""
    names = [element.tag] if isinstance(element.tag, str) else []
    names.extend(element.attrib)
    return {_namespace_of(name) for name in names} - {'', XML_NS}


class XmpDocument:
    """Editable XMP packet rooted at ``x:xmpmeta``."""

    def __init__(self, root: ET.Element, prefixes: Optional[Dict[str, str]] = None):
        """Wrap an ``x:xmpmeta`` element.

        Args:
            root: Root element of the packet
            prefixes: Namespace URI -> prefix the packet declared for
                namespaces without a standard prefix
        """
        self._root = root
        self._prefixes = dict(prefixes or {})

    @classmethod
    def new(cls) -> 'XmpDocument':
        """Create the minimal ``xmpmeta/RDF/Description`` document."""
        root = ET.Element(X_XMPMETA, {X_XMPTK: XMP_TOOLKIT})
        rdf = ET.SubElement(root, RDF_RDF)
        ET.SubElement(rdf, RDF_DESCRIPTION, {RDF_ABOUT: ''})
        return cls(root)

    @classmethod
    def parse(cls, data: bytes) -> 'XmpDocument':
        """Parse an XMP packet.

        Args:
            data: Raw packet, optionally wrapped in ``<?xpacket?>``
                instructions and padded with whitespace or NUL bytes

        Returns:
            Parsed document

        Raises:
            XmpParseError: If the bytes are not XML or not an XMP packet
        """
        if isinstance(data, str):
            data = data.encode('utf-8')

        payload = _XPACKET_PATTERN.sub(b'', data or b'').strip(b' \t\r\n\x00')
        if not payload:
            raise XmpParseError("XMP block is empty")

        try:
            declared = [
                ns for _, ns in ET.iterparse(io.BytesIO(payload), events=('start-ns',))
            ]
            root = ET.fromstring(payload)
        except ET.ParseError as e:
            raise XmpParseError(f"Malformed XMP: {e}") from e

        if root.tag == RDF_RDF:
            logger.debug("XMP packet has no x:xmpmeta root, wrapping rdf:RDF")
            wrapper = ET.Element(X_XMPMETA)
            wrapper.append(root)
            root = wrapper
        elif root.tag != X_XMPMETA:
            raise XmpParseError(f"Unexpected XMP root element: {root.tag}")

        # Prefixes the packet uses for namespaces we have no prefix for
        prefixes = {}
        for prefix, uri in declared:
            if (
                prefix and prefix != 'xml' and prefix not in NAMESPACES
                and uri not in _KNOWN_URIS and not _RESERVED_PREFIX.match(prefix)
            ):
                prefixes.setdefault(uri, prefix)

        return cls(root, prefixes)

    def serialize(self) -> bytes:
        """Serialize to a UTF-8 packet with a standard xpacket wrapper.

        Namespaces used inside a single ``rdf:Description`` are declared on
        that element; the rest stay on ``x:xmpmeta``.
        """
        ET.indent(self._root, space=' ')
        body = self._rewrite_markup(ET.tostring(self._root, encoding='unicode'))
        return f"{XPACKET_HEADER}\n{body}\n{XPACKET_TRAILER}".encode('utf-8')

    def _rewrite_markup(self, body: str) -> str:
        """Restore packet prefixes and move declarations onto descriptions.

        ElementTree writes every declaration on the root and names namespaces
        it has no registered prefix for ``ns0``, ``ns1`` and so on.
        """
        root_tag = _MARKUP.search(body)
        declarations = _DECLARATION.findall(root_tag.group())
        taken = {prefix for prefix, _ in declarations}

        renames = {}
        for prefix, uri in declarations:
            wanted = self._prefixes.get(unescape(uri, {'&quot;': '"'}))
            if wanted and wanted not in taken and _RESERVED_PREFIX.match(prefix):
                renames[prefix] = wanted
                taken.add(wanted)

        moves = self._local_namespaces()
        moved = {}
        for prefix, uri in declarations:
            owner = moves.get(unescape(uri, {'&quot;': '"'}))
            if owner is not None:
                moved.setdefault(owner, []).append((renames.get(prefix, prefix), uri))
        moved_uris = {uri for items in moved.values() for _, uri in items}

        rdf_prefix = next((p for p, uri in declarations if uri == NAMESPACES['rdf']), 'rdf')
        description_open = f'<{rdf_prefix}:Description'
        top_level = self._top_level_positions()
        position = -1

        def rename(text: str) -> str:
            # Attribute values are left alone
            parts = _QUOTED.split(text)
            for i in range(0, len(parts), 2):
                parts[i] = _GENERATED_NAME.sub(lambda m: renames.get(m.group(1), m.group(1)), parts[i])
            return ''.join(parts)

        def rewrite(match) -> str:
            nonlocal position
            text = match.group()
            if match.start() == root_tag.start():
                text = _DECLARATION.sub(
                    lambda m: '' if m.group(2) in moved_uris else m.group(), text
                )
            elif text.startswith(description_open) and text[len(description_open)] in ' />':
                position += 1
                items = moved.get(top_level.get(position))
                if items:
                    extra = ''.join(f' xmlns:{prefix}="{uri}"' for prefix, uri in items)
                    text = description_open + extra + text[len(description_open):]
            return rename(text)

        return _MARKUP.sub(rewrite, body)

    def _top_level_positions(self) -> Dict[int, int]:
        """Map document-order index of every ``rdf:Description`` to its top-level index."""
        top_level = {id(element): index for index, element in enumerate(self._descriptions())}
        return {
            position: top_level[id(element)]
            for position, element in enumerate(self._root.iter(RDF_DESCRIPTION))
            if id(element) in top_level
        }

    def _local_namespaces(self) -> Dict[str, int]:
        """Namespaces used by exactly one top-level description and nowhere else."""
        descriptions = self._descriptions()
        inside = {id(node) for description in descriptions for node in description.iter()}

        outside: Set[str] = set()
        for node in self._root.iter():
            if id(node) not in inside:
                outside.update(_namespaces_used(node))

        owners: Dict[str, Set[int]] = {}
        for index, description in enumerate(descriptions):
            for node in description.iter():
                for uri in _namespaces_used(node):
                    owners.setdefault(uri, set()).add(index)

        return {
            uri: indexes.pop()
            for uri, indexes in owners.items()
            if len(indexes) == 1 and uri not in outside and uri not in _RESERVED_NAMESPACES
        }

    def _descriptions(self) -> List[ET.Element]:
        rdf = self._root.find(RDF_RDF)
        if rdf is None:
            return []
        return rdf.findall(RDF_DESCRIPTION)

    def _get_or_create_rdf_description(self) -> ET.Element:
        """First ``rdf:Description``, building any missing ancestors."""
        rdf = self._root.find(RDF_RDF)
        if rdf is None:
            rdf = ET.SubElement(self._root, RDF_RDF)

        description = rdf.find(RDF_DESCRIPTION)
        if description is None:
            description = ET.SubElement(rdf, RDF_DESCRIPTION, {RDF_ABOUT: ''})
        return description

    def _find(self, tag: XmpTag) -> Optional[Tuple[ET.Element, ET.Element]]:
        """Locate a property across all ``rdf:Description`` elements."""
        for description in self._descriptions():
            element = description.find(tag.clark)
            if element is not None:
                return description, element
        return None

    def _replace_property(self, tag: XmpTag) -> ET.Element:
        """Empty a property where it stands, or append it to the first description.

        Further occurrences in other descriptions are dropped.
        """
        found = self._find(tag)
        if found is None:
            return ET.SubElement(self._get_or_create_rdf_description(), tag.clark)

        element = found[1]
        for description in self._descriptions():
            for duplicate in description.findall(tag.clark):
                if duplicate is not element:
                    description.remove(duplicate)

        element.clear()
        return element

    def get_description(self, tag: XmpTag = DC_DESCRIPTION) -> Optional[str]:
        """Read a localized string property.

        Prefers the ``x-default`` alternative, falls back to the only
        ``rdf:li`` when exactly one is present, and accepts a plain text
        property as written by some tools.

        Returns:
            The value, or None when absent or blank
        """
        found = self._find(tag)
        if found is None:
            return None
        element = found[1]

        alt = element.find(RDF_ALT)
        if alt is None:
            return None if is_blank(element.text) else element.text

        items = alt.findall(RDF_LI)
        for item in items:
            if item.get(XML_LANG) == DEFAULT_LANGUAGE and not is_blank(item.text):
                return item.text

        if len(items) == 1 and not is_blank(items[0].text):
            return items[0].text

        return None

    def set_description(self, tag: XmpTag, value: str) -> None:
        """Replace a localized string property with a single x-default value.

        Raises:
            ValueError: If value is blank; use remove_tag() to clear
        """
        if is_blank(value):
            raise ValueError(f"Refusing to write blank {tag}; use remove_tag()")

        prop = self._replace_property(tag)
        alt = ET.SubElement(prop, RDF_ALT)
        item = ET.SubElement(alt, RDF_LI, {XML_LANG: DEFAULT_LANGUAGE})
        item.text = value

    def get_bag(self, tag: XmpTag) -> List[str]:
        """Non-blank items of an ``rdf:Bag`` property, in document order."""
        found = self._find(tag)
        if found is None:
            return []
        bag = found[1].find(RDF_BAG)
        if bag is None:
            return []
        return [item.text for item in bag.findall(RDF_LI) if not is_blank(item.text)]

    def set_bag(self, tag: XmpTag, values: Iterable[str]) -> bool:
        """Replace an ``rdf:Bag`` property.

        Nothing is written, and an existing bag is kept, when values holds no
        non-blank strings.

        Returns:
            True if the bag was written
        """
        items = [value for value in values if not is_blank(value)]
        if not items:
            return False

        prop = self._replace_property(tag)
        bag = ET.SubElement(prop, RDF_BAG)
        for value in items:
            ET.SubElement(bag, RDF_LI).text = value
        return True

    def remove_tag(self, tag: XmpTag) -> bool:
        """Remove every occurrence of a property.

        Returns:
            True if anything was removed
        """
        removed = False
        for description in self._descriptions():
            for element in description.findall(tag.clark):
                description.remove(element)
                removed = True
        return removed

    def has_content(self) -> bool:
        """Whether any description holds a property worth keeping.

        ``rdf:about`` and namespace declarations do not count; neither do
        child elements in the ``rdf:`` or ``x:`` namespaces.
        """
        for description in self._descriptions():
            if any(name != RDF_ABOUT for name in description.attrib):
                return True
            for child in description:
                if isinstance(child.tag, str) and _namespace_of(child.tag) not in _RESERVED_NAMESPACES:
                    return True
        return False
