"""Shared string pool.

Cells of type ``s`` store an index into the workbook's shared string table
instead of the text itself. The pool keeps the ordered list and a reverse
lookup in step so that get-or-create and in-place replacement stay O(1).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from lxml import etree as ET

from .package import NS, XML_SPACE, qn, replace_children


logger = logging.getLogger(__name__)


def _si_text(si: ET._Element) -> str:
    """Plain text of an ``<si>``: either a single ``<t>`` or the ``<r>`` runs joined."""
    parts = [t.text or "" for t in si.findall("main:t", NS)]
    parts.extend(t.text or "" for t in si.findall("main:r/main:t", NS))
    return "".join(parts)


def _new_si(text: str) -> ET._Element:
    si = ET.Element(qn("main", "si"), nsmap={None: NS["main"]})
    t = ET.SubElement(si, qn("main", "t"))
    t.text = text
    if text and (text[0].isspace() or text[-1].isspace()):
        t.set(XML_SPACE, "preserve")
    return si


class SharedStrings:
    """Ordered, deduplicated text table addressed by index."""

    def __init__(self, strings: Optional[List[str]] = None):
        self._strings: List[str] = []
        self._lookup: Dict[str, int] = {}
        # Original <si> markup per index; None once the entry is replaced or new
        self._elements: List[Optional[ET._Element]] = []
        for text in strings or []:
            self.add(text)

    @classmethod
    def from_xml(cls, root: ET._Element) -> "SharedStrings":
        pool = cls()
        for index, si in enumerate(root.findall("main:si", NS)):
            text = _si_text(si)
            pool._strings.append(text)
            pool._elements.append(si)
            # Templates written by other tools may contain duplicates; first one wins
            pool._lookup.setdefault(text, index)
        return pool

    def __len__(self) -> int:
        return len(self._strings)

    def __contains__(self, text: object) -> bool:
        return text in self._lookup

    def __getitem__(self, index: int) -> str:
        return self._strings[index]

    def get(self, index: int) -> Optional[str]:
        """Text at ``index``, or None if the index is not in the pool."""
        if 0 <= index < len(self._strings):
            return self._strings[index]
        return None

    def add(self, text: str) -> int:
        """Append ``text`` and return its new index."""
        index = len(self._strings)
        self._strings.append(text)
        self._elements.append(None)
        self._lookup[text] = index
        return index

    def index_of(self, text: str) -> int:
        """Index of ``text``, adding it if it is not in the pool yet."""
        index = self._lookup.get(text)
        if index is None:
            index = self.add(text)
        return index

    def replace(self, old_text: str, new_text: str) -> int:
        """Replace ``old_text`` in place, keeping its index.

        If ``new_text`` is already pooled its index is returned and ``old_text``
        stays as it is. Adds ``new_text`` if ``old_text`` is unknown.
        """
        existing = self._lookup.get(new_text)
        if existing is not None:
            return existing
        index = self._lookup.get(old_text)
        if index is None:
            return self.add(new_text)
        self._strings[index] = new_text
        self._elements[index] = None
        del self._lookup[old_text]
        self._lookup[new_text] = index
        return index

    def to_list(self) -> List[str]:
        return list(self._strings)

    def write_to(self, root: ET._Element) -> None:
        """Rewrite the children of an ``<sst>`` root from the pool."""
        items = []
        for text, element in zip(self._strings, self._elements):
            items.append(element if element is not None else _new_si(text))
        replace_children(root, items)
        root.set("count", str(len(items)))
        root.set("uniqueCount", str(len(items)))
        logger.debug(f"[STRINGS] Wrote {len(items)} shared strings")
