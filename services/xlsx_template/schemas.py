"""Pydantic schemas for the template engine.

These model the small value types the substitution pass works with:
- Cell references and ranges (with sheet qualifier and absolute markers)
- Placeholder tokens extracted from cell and column text
- Sheet and table column descriptors exposed by the structural index
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PlaceholderKind(str, Enum):
    """Substitution kinds selected by the ``kind:`` prefix."""
    NORMAL = "normal"  # ${name} - scalar text or horizontal array
    TABLE = "table"  # ${table:name.key} - vertical expansion of records


class CellRef(BaseModel):
    """A single cell reference such as ``Sheet1!$B$4``."""
    table: Optional[str] = None  # Sheet qualifier before '!', kept verbatim (quotes included)
    col: str  # Column letters e.g. "A", "AA"
    col_absolute: bool = False
    row: int  # 1-indexed row number
    row_absolute: bool = False


class CellRange(BaseModel):
    """An inclusive rectangular range, e.g. ``A1:C10``."""
    start: CellRef
    end: CellRef


class Placeholder(BaseModel):
    """A ``${...}`` token found in a text value."""
    raw: str  # Exact matched text including delimiters e.g. "${table:rows.field}"
    kind: str = PlaceholderKind.NORMAL.value  # "normal" unless a kind prefix was given
    name: str
    key: Optional[str] = None  # Field projected out of each element
    is_whole_cell_value: bool = False  # True if raw == the entire source text
    start: int = 0  # Offset of raw in the source text
    end: int = 0  # Offset just past raw

    @property
    def is_table(self) -> bool:
        return self.kind == PlaceholderKind.TABLE.value

    @property
    def is_normal(self) -> bool:
        return self.kind == PlaceholderKind.NORMAL.value


class SheetInfo(BaseModel):
    """A worksheet entry from the workbook part."""
    id: int  # sheetId attribute
    name: str
    location_path: str  # Part name inside the package e.g. "xl/worksheets/sheet1.xml"
    rel_id: Optional[str] = None


class TableColumnInfo(BaseModel):
    """A declared column of a named table."""
    id: int
    name: str


class TableInfo(BaseModel):
    """Summary of a named table attached to a sheet."""
    name: Optional[str] = None
    location_path: str
    ref: str
    columns: List[TableColumnInfo] = Field(default_factory=list)
