"""XLSX Template Engine - fill spreadsheet templates with data.

This module handles:
1. Loading an .xlsx template and indexing its sheets, tables and shared strings
2. Replacing ${...} placeholders with scalars, rows of cells, or rows of records
3. Keeping merged cells, tables, defined names and dimensions consistent
4. Writing the filled workbook back out as .xlsx bytes
"""

from .errors import (
    ReferenceParseError,
    SheetNotFoundError,
    TemplateError,
    TemplateLoadError,
)
from .schemas import (
    CellRange,
    CellRef,
    Placeholder,
    PlaceholderKind,
    SheetInfo,
    TableColumnInfo,
    TableInfo,
)
from .refs import (
    char_to_num,
    join_range,
    join_ref,
    next_col,
    next_row,
    num_to_char,
    split_range,
    split_ref,
)
from .placeholders import extract_placeholders
from .shared_strings import SharedStrings
from .expander import ExpansionStats
from .workbook import Workbook, generate, load, substitute
from .validation import ValidationReport, validate_workbook

__all__ = [
    # Errors
    "TemplateError",
    "TemplateLoadError",
    "SheetNotFoundError",
    "ReferenceParseError",
    # Schemas
    "CellRef",
    "CellRange",
    "Placeholder",
    "PlaceholderKind",
    "SheetInfo",
    "TableColumnInfo",
    "TableInfo",
    # Reference codec
    "char_to_num",
    "num_to_char",
    "split_ref",
    "join_ref",
    "split_range",
    "join_range",
    "next_row",
    "next_col",
    # Engine
    "extract_placeholders",
    "SharedStrings",
    "ExpansionStats",
    "Workbook",
    "load",
    "substitute",
    "generate",
    "ValidationReport",
    "validate_workbook",
]
