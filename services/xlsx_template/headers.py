"""Placeholder substitution in named-table column headers.

Table parts carry their own copy of the header names (``tableColumn/@name``),
which must agree with the header cells on the sheet. A whole-name
``${name}`` bound to a sequence becomes one column per element, widening the
table range to the right.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from lxml import etree as ET

from .package import NS, clone_element, replace_children
from .placeholders import extract_placeholders
from .refs import char_to_num, join_range, num_to_char, split_range
from .structure import NamedTable
from .values import MISSING, is_sequence, lookup, project, to_text


logger = logging.getLogger(__name__)


def _drop_uid(column: ET._Element) -> None:
    # Revision uids (xr3:uid) must stay unique within a table
    for attr in list(column.attrib):
        if attr.endswith("}uid"):
            del column.attrib[attr]


def substitute_table_column_headers(
    tables: Iterable[NamedTable], substitutions: Mapping[str, Any]
) -> int:
    """Rename (and possibly multiply) table columns. Returns columns inserted."""
    total_inserted = 0

    for table in tables:
        columns = table.columns_element
        if columns is None:
            continue

        table_range = split_range(table.ref)
        index = 0
        inserted = 0
        new_columns: List[ET._Element] = []

        for column in columns.findall("main:tableColumn", NS):
            index += 1
            column.set("id", str(index))
            new_columns.append(column)

            name = column.get("name", "")
            for placeholder in extract_placeholders(name):
                value = lookup(substitutions, placeholder.name)
                if value is MISSING:
                    continue

                if placeholder.is_whole_cell_value and placeholder.is_normal and is_sequence(value):
                    new_column = column
                    for offset, element in enumerate(value):
                        if offset > 0:
                            new_column = clone_element(new_column)
                            _drop_uid(new_column)
                            index += 1
                            new_column.set("id", str(index))
                            new_columns.append(new_column)
                            inserted += 1
                            end = table_range.end
                            end.col = num_to_char(char_to_num(end.col) + 1)
                        item = project(element, placeholder.key)
                        new_column.set("name", to_text(None if item is MISSING else item))
                else:
                    value = project(value, placeholder.key)
                    if value is MISSING:
                        continue
                    name = name.replace(placeholder.raw, to_text(value), 1)
                    column.set("name", name)

        replace_children(columns, new_columns)

        if inserted > 0:
            columns.set("count", str(index))
            table.set_ref(join_range(table_range))
            total_inserted += inserted
            logger.debug(f"[SUBSTITUTE] Table {table.name!r}: {inserted} header columns inserted")

    return total_inserted
