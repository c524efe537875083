"""Row/table expansion over a worksheet's ``sheetData``.

Walks the rows top to bottom and the cells of each row left to right:

- a whole-cell ``${table:name.key}`` bound to a sequence grows the sheet
  downwards, one row per element after the first;
- a whole-cell ``${name}`` bound to a sequence grows the row to the right,
  one cell per element after the first;
- anything else is plain text replacement through the shared string pool.

Rows and cells that move because of earlier insertions get their references
rewritten as they are visited. Rows created for a source row are buffered and
spliced in right after it, then everything anchored below is pushed down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from lxml import etree as ET

from .package import NS, clone_element, replace_children
from .placeholders import extract_placeholders, has_placeholders
from .ranges import grow_tables, push_down, tables_containing
from .refs import char_to_num, join_ref, num_to_char, offset_ref, split_ref
from .schemas import CellRef
from .shared_strings import SharedStrings
from .structure import Sheet
from .values import (
    MISSING,
    clear_cell,
    insert_cell_value,
    is_sequence,
    lookup,
    project,
    to_text,
)


logger = logging.getLogger(__name__)


@dataclass
class ExpansionStats:
    """What a pass over one sheet changed."""
    rows_inserted: int = 0
    columns_inserted: int = 0  # Widest growth of any single row
    placeholders_substituted: int = 0
    placeholders_skipped: int = 0


def update_row_span(row: ET._Element, cells_inserted: int) -> None:
    """Widen the last ``spans`` range of a row, e.g. ``1:4`` -> ``1:6``."""
    spans = row.get("spans")
    if not spans or not cells_inserted:
        return
    ranges = spans.split()
    first, _, last = ranges[-1].partition(":")
    if not last:
        return
    ranges[-1] = f"{first}:{int(last) + cells_inserted}"
    row.set("spans", " ".join(ranges))


def _item(element: Any, key: Optional[str]) -> Any:
    value = project(element, key)
    return None if value is MISSING else value


class RowExpander:
    """Applies one substitution mapping to one sheet, in place."""

    def __init__(
        self,
        sheet: Sheet,
        strings: SharedStrings,
        substitutions: Mapping[str, Any],
        workbook_root: ET._Element,
    ):
        self.sheet = sheet
        self.strings = strings
        self.substitutions = substitutions
        self.workbook_root = workbook_root
        self.stats = ExpansionStats()
        # Columns already inserted on each buffered new row of the current source row
        self._row_offsets: List[int] = []

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------

    def run(self) -> ExpansionStats:
        sheet_data = self.sheet.sheet_data
        if sheet_data is None:
            return self.stats

        rows: List[ET._Element] = []
        last_row = 0
        for row in sheet_data.findall("main:row", NS):
            r = row.get("r")
            current_row = int(r) + self.stats.rows_inserted if r else last_row + 1
            row.set("r", str(current_row))
            last_row = current_row
            rows.append(row)

            cells, cells_inserted, new_rows = self._expand_row(row, current_row)

            # Columns may have been inserted, so rebuild the row's children
            replace_children(row, cells)
            if cells_inserted:
                update_row_span(row, cells_inserted)
                self.stats.columns_inserted = max(self.stats.columns_inserted, cells_inserted)

            if new_rows:
                rows.extend(new_rows)
                self.stats.rows_inserted += len(new_rows)
                last_row = current_row + len(new_rows)
                push_down(self.sheet, self.workbook_root, current_row, len(new_rows))
                logger.debug(f"[SUBSTITUTE] Row {current_row}: inserted {len(new_rows)} rows below")

        replace_children(sheet_data, rows)
        return self.stats

    def _expand_row(
        self, row: ET._Element, current_row: int
    ) -> Tuple[List[ET._Element], int, List[ET._Element]]:
        cells: List[ET._Element] = []
        self._row_offsets = []
        new_rows: List[ET._Element] = []
        cells_inserted = 0
        last_col = 0

        for cell in row.findall("main:c", NS):
            ref = self._current_ref(cell, current_row, cells_inserted, last_col)
            cell.set("r", ref)
            last_col = char_to_num(split_ref(ref).col)

            inserted, keep_cell = self._expand_cell(row, current_row, cell, cells, new_rows)
            cells_inserted += inserted
            if keep_cell:
                cells.append(cell)
            if inserted:
                last_col += inserted

        return cells, cells_inserted, new_rows

    @staticmethod
    def _current_ref(cell: ET._Element, current_row: int, cells_inserted: int, last_col: int) -> str:
        ref = cell.get("r")
        if ref:
            col = char_to_num(split_ref(ref).col) + cells_inserted
        else:
            col = last_col + 1
        return join_ref(CellRef(col=num_to_char(col), row=current_row))

    # -------------------------------------------------------------------------
    # Cells
    # -------------------------------------------------------------------------

    def _cell_text(self, cell: ET._Element) -> Optional[str]:
        if cell.get("t") != "s":
            return None
        v = cell.find("main:v", NS)
        if v is None or not (v.text or "").strip():
            return None
        try:
            index = int(v.text)
        except ValueError:
            logger.debug(f"[SUBSTITUTE] Cell {cell.get('r')}: non-numeric string index {v.text!r}")
            return None
        text = self.strings.get(index)
        if text is None:
            logger.debug(f"[SUBSTITUTE] Cell {cell.get('r')}: dangling shared string index {index}")
        return text

    def _expand_cell(
        self,
        row: ET._Element,
        current_row: int,
        cell: ET._Element,
        cells: List[ET._Element],
        new_rows: List[ET._Element],
    ) -> Tuple[int, bool]:
        """Substitute every placeholder of one cell.

        Returns (cells inserted to the right, whether the original cell stays).
        """
        text = self._cell_text(cell)
        if not has_placeholders(text):
            return 0, True

        inserted = 0
        keep_cell = True
        text_changed = False
        for placeholder in extract_placeholders(text):
            value = lookup(self.substitutions, placeholder.name)
            if value is MISSING:
                self.stats.placeholders_skipped += 1
                logger.debug(f"[SUBSTITUTE] No value for {placeholder.raw} in {cell.get('r')}")
                continue

            whole = placeholder.is_whole_cell_value
            if whole and placeholder.is_table and is_sequence(value):
                inserted, replaced = self._substitute_table(
                    row, current_row, cell, cells, new_rows, value, placeholder.key
                )
                keep_cell = not replaced
            elif whole and placeholder.is_normal and is_sequence(value):
                items = [_item(element, placeholder.key) for element in value]
                inserted = self._substitute_array(cells, cell, items)
                keep_cell = False
            else:
                value = project(value, placeholder.key)
                if value is MISSING:
                    self.stats.placeholders_skipped += 1
                    continue
                if whole:
                    self._substitute_scalar(cell, text, value)
                else:
                    text = text.replace(placeholder.raw, to_text(value), 1)
                    text_changed = True
            self.stats.placeholders_substituted += 1

        if text_changed:
            insert_cell_value(cell, text, self.strings)
        return inserted, keep_cell

    def _substitute_scalar(self, cell: ET._Element, text: str, value: Any) -> None:
        """Write a whole-cell scalar over the placeholder text ``text``."""
        if value is None:
            clear_cell(cell)
            return
        if isinstance(value, str):
            # Keep the pool index; other cells showing this text follow along
            self.strings.replace(text, value)
        insert_cell_value(cell, value, self.strings)

    def _substitute_array(
        self, cells: List[ET._Element], cell: ET._Element, items: List[Any]
    ) -> int:
        """Lay ``items`` out to the right of ``cell``. Returns cells inserted."""
        ref = cell.get("r")
        if not items:
            # Nothing to show: a single blank cell keeps the slot and style
            items = [None]
        for offset, item in enumerate(items):
            new_cell = clone_element(cell)
            if offset:
                new_cell.set("r", offset_ref(ref, cols=offset))
            if item is None:
                clear_cell(new_cell)
            else:
                insert_cell_value(new_cell, item, self.strings)
            cells.append(new_cell)
        return len(items) - 1

    def _substitute_table(
        self,
        row: ET._Element,
        current_row: int,
        cell: ET._Element,
        cells: List[ET._Element],
        new_rows: List[ET._Element],
        records: Any,
        key: Optional[str],
    ) -> Tuple[int, bool]:
        """Lay ``records`` out downwards from ``cell``.

        The first record fills the cell itself; each further record goes into
        the matching buffered new row, created on demand. A record whose
        projected value is a sequence expands to the right on its own row.

        Returns (cells inserted on the source row, whether ``cell`` was replaced).
        """
        if not records:
            clear_cell(cell)
            return 0, False

        parent_tables = tables_containing(self.sheet.tables, cell.get("r"))
        col = split_ref(cell.get("r")).col
        inserted = 0
        replaced = False

        for index, record in enumerate(records):
            item = _item(record, key)

            if index == 0:
                if is_sequence(item):
                    inserted = self._substitute_array(cells, cell, list(item))
                    replaced = True
                else:
                    self._write(cell, item)
                continue

            if index - 1 < len(new_rows):
                new_row = new_rows[index - 1]
            else:
                new_row = clone_element(row, deep=False)
                new_row.set("r", str(current_row + len(new_rows) + 1))
                new_rows.append(new_row)
                self._row_offsets.append(0)

            # Earlier cells on this row may have spread to the right
            new_cell = clone_element(cell)
            new_ref = join_ref(CellRef(col=col, row=int(new_row.get("r"))))
            new_cell.set("r", offset_ref(new_ref, cols=self._row_offsets[index - 1]))

            if is_sequence(item):
                row_cells: List[ET._Element] = []
                row_inserted = self._substitute_array(row_cells, new_cell, list(item))
                new_row.extend(row_cells)
                update_row_span(new_row, row_inserted)
                self._row_offsets[index - 1] += row_inserted
                self.stats.columns_inserted = max(
                    self.stats.columns_inserted, self._row_offsets[index - 1]
                )
            else:
                self._write(new_cell, item)
                new_row.append(new_cell)

            grow_tables(parent_tables, new_cell.get("r"))

        return inserted, replaced

    def _write(self, cell: ET._Element, value: Any) -> None:
        if value is None:
            clear_cell(cell)
        else:
            insert_cell_value(cell, value, self.strings)

