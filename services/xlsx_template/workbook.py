"""Workbook - load a template, substitute placeholders, generate the result.

Lifecycle::

    workbook = Workbook(template_bytes)        # load: parse package + index
    workbook.substitute(1, {"title": "Q3"})    # mutate one sheet in memory
    workbook.substitute("Detail", {...})       # ... as many sheets as needed
    output = workbook.generate()               # serialize the container

Each ``substitute`` call writes the sheet, workbook, shared strings and table
parts back into the in-memory package before returning. If it raises, the
workbook is left in an undefined state and should be discarded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import TemplateError
from .expander import ExpansionStats, RowExpander
from .headers import substitute_table_column_headers
from .package import (
    CALC_CHAIN_RELATIONSHIP,
    CONTENT_TYPES_PART,
    NS,
    Package,
)
from .placeholders import extract_placeholders, has_placeholders
from .ranges import update_dimension
from .schemas import Placeholder, SheetInfo, TableInfo
from .shared_strings import SharedStrings
from .structure import Sheet, StructuralIndex


logger = logging.getLogger(__name__)

SheetKey = Union[int, str]


class Workbook:
    """A spreadsheet template held in memory for one templating session."""

    def __init__(self, data: Optional[bytes] = None, compression: str = "deflated"):
        self.compression = compression
        self.package: Optional[Package] = None
        self.index: Optional[StructuralIndex] = None
        self.shared_strings = SharedStrings()
        if data is not None:
            self.load(data)

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load(self, data: bytes) -> "Workbook":
        """Load an .xlsx template from bytes."""
        package = Package(data)
        index = StructuralIndex(package)
        self.package = package
        self.index = index
        self.shared_strings = SharedStrings.from_xml(index.shared_strings_root)
        logger.info(
            f"[LOAD] Workbook {index.workbook_path}: {len(index.sheets)} sheets, "
            f"{len(self.shared_strings)} shared strings"
        )
        return self

    load_template = load

    def _require_index(self) -> StructuralIndex:
        if self.index is None:
            raise TemplateError("No template loaded")
        return self.index

    @property
    def sheets(self) -> List[SheetInfo]:
        return list(self._require_index().sheets)

    def sheet(self, sheet: SheetKey) -> Sheet:
        return self._require_index().sheet(sheet)

    def tables(self, sheet: SheetKey) -> List[TableInfo]:
        return [table.info() for table in self.sheet(sheet).tables]

    def placeholders(self, sheet: SheetKey) -> Dict[str, List[Placeholder]]:
        """Placeholders found in the string cells of a sheet, keyed by cell ref."""
        found: Dict[str, List[Placeholder]] = {}
        sheet_data = self.sheet(sheet).sheet_data
        if sheet_data is None:
            return found
        for cell in sheet_data.iterfind("main:row/main:c[@t='s']", NS):
            v = cell.find("main:v", NS)
            if v is None or not (v.text or "").strip().isdigit():
                continue
            text = self.shared_strings.get(int(v.text))
            if has_placeholders(text):
                found[cell.get("r", "")] = list(extract_placeholders(text))
        return found

    # -------------------------------------------------------------------------
    # Substitute
    # -------------------------------------------------------------------------

    def substitute(self, sheet: SheetKey, substitutions: Mapping[str, Any]) -> ExpansionStats:
        """Replace placeholders in one sheet using ``substitutions``."""
        index = self._require_index()
        target = index.sheet(sheet)

        stats = RowExpander(target, self.shared_strings, substitutions, index.workbook_root).run()

        # Header cells and table columns must agree, so run the table pass too
        substitute_table_column_headers(target.tables, substitutions)

        update_dimension(target.root, stats.rows_inserted, stats.columns_inserted)
        if stats.rows_inserted or stats.columns_inserted:
            self._drop_calc_chain()

        self._flush(target)
        logger.info(
            f"[SUBSTITUTE] Sheet {target.name!r}: {stats.placeholders_substituted} placeholders substituted, "
            f"{stats.placeholders_skipped} skipped, {stats.rows_inserted} rows and "
            f"{stats.columns_inserted} columns inserted"
        )
        return stats

    def _flush(self, sheet: Sheet) -> None:
        """Write the live trees touched by a substitution back into the package."""
        index = self._require_index()
        package = self.package
        package.write_xml(sheet.info.location_path, sheet.root)
        package.write_xml(index.workbook_path, index.workbook_root)
        self.shared_strings.write_to(index.shared_strings_root)
        package.write_xml(index.shared_strings_path, index.shared_strings_root)
        for table in sheet.tables:
            package.write_xml(table.location_path, table.root)

    def _drop_calc_chain(self) -> None:
        """Remove the calculation chain; cells it lists may have moved."""
        index = self._require_index()
        path = index.calc_chain_path
        if not path:
            return

        self.package.remove(path)
        for rel in index.workbook_rels.findall("rel:Relationship", NS):
            if rel.get("Type") == CALC_CHAIN_RELATIONSHIP:
                index.workbook_rels.remove(rel)
        self.package.write_xml(index.workbook_rels_path, index.workbook_rels)

        if self.package.has_part(CONTENT_TYPES_PART):
            content_types = self.package.read_xml(CONTENT_TYPES_PART)
            for override in content_types.findall("ct:Override", NS):
                if override.get("PartName") == f"/{path}":
                    content_types.remove(override)
            self.package.write_xml(CONTENT_TYPES_PART, content_types)

        index.calc_chain_path = None
        logger.debug(f"[SUBSTITUTE] Dropped calculation chain {path}")

    # -------------------------------------------------------------------------
    # Generate
    # -------------------------------------------------------------------------

    def generate(self) -> bytes:
        """Serialize the workbook into .xlsx bytes."""
        self._require_index()
        data = self.package.to_bytes(self.compression)
        logger.info(f"[GENERATE] Wrote {len(data):,} bytes")
        return data


def load(data: bytes, compression: str = "deflated") -> Workbook:
    return Workbook(data, compression=compression)


def substitute(workbook: Workbook, sheet: SheetKey, substitutions: Mapping[str, Any]) -> ExpansionStats:
    return workbook.substitute(sheet, substitutions)


def generate(workbook: Workbook) -> bytes:
    return workbook.generate()
