"""Substitution values and how they are written into cells.

Values are classified once into a closed set of kinds and the expander
dispatches on the kind rather than probing types at every call site.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from lxml import etree as ET

from .package import NS, qn
from .shared_strings import SharedStrings


class ValueKind(str, Enum):
    SCALAR = "scalar"  # str, number, bool, date/datetime, None
    ARRAY = "array"  # list/tuple of scalars
    RECORDS = "records"  # list/tuple of mappings
    OTHER = "other"  # anything else; renders as ""


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

SCALAR_TYPES = (str, int, float, Decimal, bool, date, datetime, time)

EXCEL_EPOCH = datetime(1899, 12, 30)


def classify(value: Any) -> ValueKind:
    if value is None or isinstance(value, SCALAR_TYPES):
        return ValueKind.SCALAR
    if isinstance(value, (list, tuple)):
        if value and isinstance(value[0], Mapping):
            return ValueKind.RECORDS
        return ValueKind.ARRAY
    return ValueKind.OTHER


def is_sequence(value: Any) -> bool:
    return classify(value) in (ValueKind.ARRAY, ValueKind.RECORDS)


def project(value: Any, key: Optional[str]) -> Any:
    """Follow a dotted ``key`` into mappings (or attributes). MISSING if absent."""
    if key is None:
        return value
    for part in key.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, MISSING)
        else:
            value = getattr(value, part, MISSING)
        if value is MISSING:
            return MISSING
    return value


def lookup(substitutions: Mapping, name: str, key: Optional[str] = None) -> Any:
    """Value for ``${name.key}`` or MISSING when nothing was supplied."""
    if name not in substitutions:
        return MISSING
    return project(substitutions[name], key)


def excel_serial(value: date | datetime) -> float:
    """Days since 1899-12-30, with the time of day as the fraction."""
    if isinstance(value, datetime):
        delta = value.replace(tzinfo=None) - EXCEL_EPOCH
        return delta.days + delta.seconds / 86400 + delta.microseconds / 86400e6
    return float((value - EXCEL_EPOCH.date()).days)


def format_number(value: int | float | Decimal) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_text(value: Any) -> str:
    """Text used when a value is spliced into a larger string."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return format_number(value)
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    return ""


def _value_element(cell: ET._Element) -> ET._Element:
    inline = cell.find("main:is", NS)
    if inline is not None:
        cell.remove(inline)
    v = cell.find("main:v", NS)
    if v is None:
        v = ET.SubElement(cell, qn("main", "v"))
    return v


def insert_cell_value(cell: ET._Element, value: Any, strings: SharedStrings) -> str:
    """Write ``value`` into ``cell`` with the matching cell type. Returns the text written."""
    v = _value_element(cell)

    if isinstance(value, bool):
        cell.set("t", "b")
        v.text = "1" if value else "0"
    elif isinstance(value, (int, float, Decimal)):
        cell.attrib.pop("t", None)
        v.text = format_number(value)
    elif isinstance(value, (date, datetime)):
        cell.attrib.pop("t", None)
        v.text = format_number(excel_serial(value))
    else:
        text = value if isinstance(value, str) else to_text(value)
        cell.set("t", "s")
        v.text = str(strings.index_of(text))
    return v.text


def clear_cell(cell: ET._Element) -> None:
    """Blank a cell but keep it (and its style) in place."""
    cell.attrib.pop("t", None)
    for child in list(cell):
        cell.remove(child)
