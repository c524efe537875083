"""OOXML package access.

Reads the parts of an .xlsx container into memory, hands out parsed XML
trees, and writes the (possibly modified) parts back into a new container.
lxml is used for the XML side because it preserves namespace prefixes and
declarations, which spreadsheet applications rely on (e.g. mc:Ignorable).
"""

from __future__ import annotations

import copy
import logging
import posixpath
import zipfile
from io import BytesIO
from typing import Dict, Iterable, List, Optional

from lxml import etree as ET

from .errors import TemplateLoadError


logger = logging.getLogger(__name__)


# =============================================================================
# NAMESPACES
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
    "ct": "http://schemas.openxmlformats.org/package/2006/content-types",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "x14ac": "http://schemas.microsoft.com/office/spreadsheetml/2009/9/ac",
}

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

DOCUMENT_RELATIONSHIP = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
SHARED_STRINGS_RELATIONSHIP = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/sharedStrings"
CALC_CHAIN_RELATIONSHIP = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/calcChain"

CONTENT_TYPES_PART = "[Content_Types].xml"
ROOT_RELS_PART = "_rels/.rels"

COMPRESSION = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}

_PARSER = ET.XMLParser(resolve_entities=False, huge_tree=True)


def qn(prefix: str, tag: str) -> str:
    """Qualified (Clark notation) name, e.g. ``qn("main", "row")``."""
    return f"{{{NS[prefix]}}}{tag}"


# =============================================================================
# XML HELPERS
# =============================================================================

def parse_xml(data: bytes, part_name: str = "") -> ET._Element:
    try:
        return ET.fromstring(data, _PARSER)
    except ET.XMLSyntaxError as e:
        raise TemplateLoadError(f"Could not parse {part_name or 'XML part'}: {e}") from e


def serialize_xml(root: ET._Element) -> bytes:
    """Serialize a part root with the declaration spreadsheet applications expect."""
    result = ET.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)
    # lxml writes single quotes; Excel is happier with the canonical form
    return result.replace(
        b"<?xml version='1.0' encoding='UTF-8' standalone='yes'?>",
        b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>',
        1,
    )


def clone_element(element: ET._Element, deep: bool = True) -> ET._Element:
    """Copy an element. A shallow clone keeps tag, attributes, text and tail only."""
    if deep:
        return copy.deepcopy(element)
    clone = element.makeelement(element.tag, dict(element.attrib), nsmap=element.nsmap)
    clone.text = element.text
    clone.tail = element.tail
    return clone


def replace_children(parent: ET._Element, children: Iterable[ET._Element]) -> None:
    """Make ``children`` the complete ordered child list of ``parent``."""
    children = list(children)
    for child in list(parent):
        parent.remove(child)
    parent.extend(children)


# =============================================================================
# PART NAMES
# =============================================================================

def resolve_target(base_dir: str, target: str) -> str:
    """Resolve a relationship target against the directory of its source part."""
    if target.startswith("/"):
        return target[1:]
    return posixpath.normpath(posixpath.join(base_dir, target))


def rels_path_for(part_name: str) -> str:
    """``xl/workbook.xml`` -> ``xl/_rels/workbook.xml.rels``."""
    directory, basename = posixpath.split(part_name)
    return posixpath.join(directory, "_rels", f"{basename}.rels")


def find_relationship(rels_root: ET._Element, rel_type: str) -> Optional[ET._Element]:
    for rel in rels_root.findall("rel:Relationship", NS):
        if rel.get("Type") == rel_type:
            return rel
    return None


# =============================================================================
# PACKAGE
# =============================================================================

class Package:
    """In-memory view of a zip container: part name -> bytes.

    Entry order and per-entry compression of the source are kept so an
    unmodified package is written back in the same shape.
    """

    def __init__(self, data: bytes):
        try:
            with zipfile.ZipFile(BytesIO(data), "r") as zf:
                self._entries: List[zipfile.ZipInfo] = zf.infolist()
                self._parts: Dict[str, bytes] = {
                    item.filename: zf.read(item.filename) for item in self._entries
                }
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise TemplateLoadError(f"Not a valid .xlsx container: {e}") from e
        self._added: List[str] = []
        self._dirty: set[str] = set()

    @property
    def part_names(self) -> List[str]:
        return list(self._parts)

    def has_part(self, name: str) -> bool:
        return name in self._parts

    def read(self, name: str) -> bytes:
        try:
            return self._parts[name]
        except KeyError:
            raise TemplateLoadError(f"Missing required part: {name}") from None

    def read_xml(self, name: str) -> ET._Element:
        return parse_xml(self.read(name), name)

    def write(self, name: str, data: bytes) -> None:
        if name not in self._parts:
            self._added.append(name)
        self._parts[name] = data
        self._dirty.add(name)

    def write_xml(self, name: str, root: ET._Element) -> None:
        self.write(name, serialize_xml(root))

    def remove(self, name: str) -> None:
        if self._parts.pop(name, None) is not None:
            logger.debug(f"[PACKAGE] Removed part {name}")
        self._dirty.discard(name)

    def to_bytes(self, compression: str = "deflated") -> bytes:
        compress_type = COMPRESSION.get(compression, zipfile.ZIP_DEFLATED)
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, "w", compress_type) as zf_out:
            for item in self._entries:
                if item.filename not in self._parts:
                    continue
                data = self._parts[item.filename]
                if item.filename in self._dirty:
                    zf_out.writestr(item.filename, data, compress_type=compress_type)
                else:
                    # Copy original entry as-is
                    zf_out.writestr(item, data)
            original = {item.filename for item in self._entries}
            for name in self._added:
                if name in self._parts and name not in original:
                    zf_out.writestr(name, self._parts[name], compress_type=compress_type)
        return buffer.getvalue()
