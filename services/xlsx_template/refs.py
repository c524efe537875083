"""Cell reference algebra.

Column letters use bijective base-26 (A=1 ... Z=26, AA=27): there is no zero
digit, so "Z" is followed by "AA".
"""

from __future__ import annotations

import re
from typing import Union

from .errors import ReferenceParseError
from .schemas import CellRange, CellRef


_CELL_RE = re.compile(r"^(?:(?P<table>.+)!)?(?P<col_abs>\$)?(?P<col>[A-Za-z]{1,3})(?P<row_abs>\$)?(?P<row>[1-9][0-9]*)$")

RefLike = Union[str, CellRef]


def char_to_num(letters: str) -> int:
    """Convert column letter(s) to 1-indexed number. A=1, B=2, ..., Z=26, AA=27."""
    if not letters or not letters.isalpha():
        raise ReferenceParseError(letters, "column")
    result = 0
    for char in letters.upper():
        result = result * 26 + (ord(char) - ord('A') + 1)
    return result


def num_to_char(number: int) -> str:
    """Convert 1-indexed column number to letter(s). 1=A, 26=Z, 27=AA."""
    if number < 1:
        raise ReferenceParseError(str(number), "column")
    letters = ""
    while number > 0:
        remainder = number % 26
        if remainder == 0:
            # No zero digit: emit Z and borrow one from the next position
            letters = "Z" + letters
            number = number // 26 - 1
        else:
            letters = chr(ord('A') + remainder - 1) + letters
            number //= 26
    return letters


def split_ref(ref: str) -> CellRef:
    """Parse a reference like ``B4``, ``$B$4`` or ``Sheet1!B4``."""
    match = _CELL_RE.match(ref.strip()) if ref else None
    if not match:
        raise ReferenceParseError(ref)
    return CellRef(
        table=match.group("table"),
        col=match.group("col").upper(),
        col_absolute=bool(match.group("col_abs")),
        row=int(match.group("row")),
        row_absolute=bool(match.group("row_abs")),
    )


def join_ref(ref: CellRef) -> str:
    table = f"{ref.table}!" if ref.table else ""
    col_abs = "$" if ref.col_absolute else ""
    row_abs = "$" if ref.row_absolute else ""
    return f"{table}{col_abs}{ref.col}{row_abs}{ref.row}"


def split_range(range_ref: str) -> CellRange:
    """Parse a range like ``A1:C5`` or ``'My Sheet'!$A$1:$C$5``."""
    if not range_ref:
        raise ReferenceParseError(range_ref, "range")
    qualifier, sep, body = range_ref.rpartition("!")
    parts = body.split(":")
    if len(parts) != 2:
        raise ReferenceParseError(range_ref, "range")
    try:
        start = split_ref(parts[0])
        end = split_ref(parts[1])
    except ReferenceParseError:
        raise ReferenceParseError(range_ref, "range") from None
    if sep:
        start.table = qualifier
    return CellRange(start=start, end=end)


def join_range(cell_range: CellRange) -> str:
    return f"{join_ref(cell_range.start)}:{join_ref(cell_range.end)}"


def is_range(ref: str) -> bool:
    return ":" in ref.rpartition("!")[2]


def is_reference(ref: str) -> bool:
    """True if ``ref`` parses as a cell or a range reference."""
    try:
        if is_range(ref):
            split_range(ref)
        else:
            split_ref(ref)
    except ReferenceParseError:
        return False
    return True


def _as_ref(ref: RefLike) -> CellRef:
    return split_ref(ref) if isinstance(ref, str) else ref


def is_within(ref: RefLike, start: RefLike, end: RefLike) -> bool:
    """Inclusive membership test on both axes."""
    cell, first, last = _as_ref(ref), _as_ref(start), _as_ref(end)
    col = char_to_num(cell.col)
    return (
        first.row <= cell.row <= last.row
        and char_to_num(first.col) <= col <= char_to_num(last.col)
    )


def next_row(ref: str) -> str:
    cell = split_ref(ref)
    cell.row += 1
    return join_ref(cell)


def next_col(ref: str) -> str:
    cell = split_ref(ref)
    cell.col = num_to_char(char_to_num(cell.col) + 1)
    return join_ref(cell)


def offset_ref(ref: str, rows: int = 0, cols: int = 0) -> str:
    """Move a reference by the given number of rows and columns."""
    cell = split_ref(ref)
    cell.row += rows
    if cols:
        cell.col = num_to_char(char_to_num(cell.col) + cols)
    return join_ref(cell)


def range_width(range_ref: str) -> int:
    cell_range = split_range(range_ref)
    return char_to_num(cell_range.end.col) - char_to_num(cell_range.start.col) + 1
