"""Range maintenance after row insertion.

When rows are inserted below a source row, every structure anchored strictly
below it moves down by the same amount: merged cells, named tables (and their
auto-filters) and workbook-level defined names. Merged cells anchored on the
source row itself are replicated onto each inserted row.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from lxml import etree as ET

from .package import NS, clone_element
from .refs import (
    char_to_num,
    is_range,
    is_reference,
    is_within,
    join_range,
    join_ref,
    num_to_char,
    split_range,
    split_ref,
)
from .structure import NamedTable, Sheet


logger = logging.getLogger(__name__)


def push_down(
    sheet: Sheet,
    workbook_root: ET._Element,
    current_row: int,
    num_rows: int,
) -> None:
    """Shift everything anchored below ``current_row`` down by ``num_rows``."""
    if num_rows <= 0:
        return
    push_merged_cells(sheet.root, current_row, num_rows)
    push_tables(sheet.tables, current_row, num_rows)
    push_defined_names(workbook_root, sheet.name, current_row, num_rows)


def push_merged_cells(sheet_root: ET._Element, current_row: int, num_rows: int) -> None:
    merge_cells = sheet_root.find("main:mergeCells", NS)
    if merge_cells is None:
        return

    for merge_cell in list(merge_cells.findall("main:mergeCell", NS)):
        merge_range = split_range(merge_cell.get("ref", ""))

        if merge_range.start.row > current_row:
            merge_range.start.row += num_rows
            merge_range.end.row += num_rows
            merge_cell.set("ref", join_range(merge_range))

        elif merge_range.start.row == current_row:
            # Give each inserted row the same merge as the template row
            for _ in range(num_rows):
                merge_range.start.row += 1
                merge_range.end.row += 1
                duplicate = clone_element(merge_cell)
                duplicate.set("ref", join_range(merge_range))
                merge_cells.append(duplicate)

    merge_cells.set("count", str(len(merge_cells.findall("main:mergeCell", NS))))


def push_tables(tables: Iterable[NamedTable], current_row: int, num_rows: int) -> None:
    for table in tables:
        table_range = split_range(table.ref)
        if table_range.start.row > current_row:
            table_range.start.row += num_rows
            table_range.end.row += num_rows
            table.set_ref(join_range(table_range))
            logger.debug(f"[RANGES] Moved table {table.name!r} to {table.ref}")


def _same_sheet(qualifier: str | None, sheet_name: str) -> bool:
    if not qualifier:
        return True
    if qualifier.startswith("'") and qualifier.endswith("'"):
        qualifier = qualifier[1:-1].replace("''", "'")
    return qualifier == sheet_name


def push_defined_names(
    workbook_root: ET._Element,
    sheet_name: str,
    current_row: int,
    num_rows: int,
) -> None:
    for defined_name in workbook_root.findall("main:definedNames/main:definedName", NS):
        text = (defined_name.text or "").strip()
        # Formulas, constants, unions and #REF! are not plain references
        if not text or "," in text or not is_reference(text):
            continue

        if is_range(text):
            named_range = split_range(text)
            if not _same_sheet(named_range.start.table, sheet_name):
                continue
            if named_range.start.row > current_row:
                named_range.start.row += num_rows
                named_range.end.row += num_rows
                defined_name.text = join_range(named_range)
        else:
            named_ref = split_ref(text)
            if not _same_sheet(named_ref.table, sheet_name):
                continue
            if named_ref.row > current_row:
                named_ref.row += num_rows
                defined_name.text = join_ref(named_ref)


def tables_containing(tables: Iterable[NamedTable], ref: str) -> List[NamedTable]:
    result = []
    for table in tables:
        table_range = split_range(table.ref)
        if is_within(ref, table_range.start, table_range.end):
            result.append(table)
    return result


def grow_tables(tables: Iterable[NamedTable], new_ref: str) -> None:
    """Extend each table by one row if ``new_ref`` falls just outside it."""
    for table in tables:
        table_range = split_range(table.ref)
        if not is_within(new_ref, table_range.start, table_range.end):
            table_range.end.row += 1
            table.set_ref(join_range(table_range))


def update_dimension(sheet_root: ET._Element, rows_inserted: int, cols_inserted: int) -> None:
    """Grow ``<dimension ref>`` by the rows and columns a pass inserted."""
    dimension = sheet_root.find("main:dimension", NS)
    if dimension is None or (rows_inserted <= 0 and cols_inserted <= 0):
        return

    ref = dimension.get("ref", "")
    if is_range(ref):
        dimension_range = split_range(ref)
    else:
        start = split_ref(ref)
        dimension_range = split_range(f"{ref}:{join_ref(start)}")

    end = dimension_range.end
    end.row += max(rows_inserted, 0)
    end.col = num_to_char(char_to_num(end.col) + max(cols_inserted, 0))
    dimension.set("ref", join_range(dimension_range))
