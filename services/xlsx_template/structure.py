"""Structural index of a loaded workbook package.

Resolves the relationship chain

    _rels/.rels -> workbook part -> workbook rels -> sheets / shared strings
    sheet part -> sheet rels -> table parts

once per load, and lazily parses sheet and table parts on first use so each
part has exactly one live tree per session.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from lxml import etree as ET

from .errors import SheetNotFoundError, TemplateLoadError
from .package import (
    CALC_CHAIN_RELATIONSHIP,
    DOCUMENT_RELATIONSHIP,
    NS,
    ROOT_RELS_PART,
    SHARED_STRINGS_RELATIONSHIP,
    Package,
    find_relationship,
    qn,
    rels_path_for,
    resolve_target,
)
from .refs import char_to_num, join_range, num_to_char, split_range
from .schemas import SheetInfo, TableColumnInfo, TableInfo


logger = logging.getLogger(__name__)


@dataclass
class NamedTable:
    """A table part (``xl/tables/tableN.xml``) and its live tree."""
    location_path: str
    root: ET._Element

    @property
    def name(self) -> Optional[str]:
        return self.root.get("displayName") or self.root.get("name")

    @property
    def ref(self) -> str:
        return self.root.get("ref", "")

    @ref.setter
    def ref(self, value: str) -> None:
        self.root.set("ref", value)

    @property
    def auto_filter(self) -> Optional[ET._Element]:
        return self.root.find("main:autoFilter", NS)

    @property
    def columns_element(self) -> Optional[ET._Element]:
        return self.root.find("main:tableColumns", NS)

    def set_ref(self, value: str) -> None:
        """Move the table range.

        Each corner of the auto-filter moves by as much as the same corner of
        the table, so a filter that stops above a totals row still does.
        """
        old_value = self.ref
        self.ref = value
        auto_filter = self.auto_filter
        if auto_filter is None:
            return
        if not old_value or not auto_filter.get("ref"):
            auto_filter.set("ref", value)
            return

        before, after = split_range(old_value), split_range(value)
        filter_range = split_range(auto_filter.get("ref"))
        for corner in ("start", "end"):
            old_ref, new_ref = getattr(before, corner), getattr(after, corner)
            target = getattr(filter_range, corner)
            target.row += new_ref.row - old_ref.row
            col_delta = char_to_num(new_ref.col) - char_to_num(old_ref.col)
            target.col = num_to_char(char_to_num(target.col) + col_delta)
        auto_filter.set("ref", join_range(filter_range))

    def info(self) -> TableInfo:
        columns = []
        columns_el = self.columns_element
        if columns_el is not None:
            for col in columns_el.findall("main:tableColumn", NS):
                columns.append(TableColumnInfo(id=int(col.get("id", "0")), name=col.get("name", "")))
        return TableInfo(name=self.name, location_path=self.location_path, ref=self.ref, columns=columns)


@dataclass
class Sheet:
    """A worksheet: workbook entry plus its live tree and tables."""
    info: SheetInfo
    root: ET._Element
    tables: List[NamedTable] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def sheet_data(self) -> Optional[ET._Element]:
        return self.root.find("main:sheetData", NS)


class StructuralIndex:
    """Locates the workbook, shared strings, sheets and tables of a package."""

    def __init__(self, package: Package):
        self.package = package

        root_rels = package.read_xml(ROOT_RELS_PART)
        doc_rel = find_relationship(root_rels, DOCUMENT_RELATIONSHIP)
        if doc_rel is None or not doc_rel.get("Target"):
            raise TemplateLoadError("No officeDocument relationship in _rels/.rels")

        self.workbook_path = resolve_target("", doc_rel.get("Target"))
        self.prefix = posixpath.dirname(self.workbook_path)
        self.workbook_root = package.read_xml(self.workbook_path)
        self.workbook_rels_path = rels_path_for(self.workbook_path)
        self.workbook_rels = package.read_xml(self.workbook_rels_path)

        ss_rel = find_relationship(self.workbook_rels, SHARED_STRINGS_RELATIONSHIP)
        if ss_rel is None:
            raise TemplateLoadError(f"No sharedStrings relationship in {self.workbook_rels_path}")
        self.shared_strings_path = resolve_target(self.prefix, ss_rel.get("Target", ""))
        self.shared_strings_root = package.read_xml(self.shared_strings_path)

        calc_rel = find_relationship(self.workbook_rels, CALC_CHAIN_RELATIONSHIP)
        self.calc_chain_path: Optional[str] = (
            resolve_target(self.prefix, calc_rel.get("Target", "")) if calc_rel is not None else None
        )

        self.sheets: List[SheetInfo] = self._load_sheet_infos()
        self._sheets: Dict[str, Sheet] = {}

    # -------------------------------------------------------------------------
    # Sheets
    # -------------------------------------------------------------------------

    def _load_sheet_infos(self) -> List[SheetInfo]:
        targets = {
            rel.get("Id"): rel.get("Target")
            for rel in self.workbook_rels.findall("rel:Relationship", NS)
        }
        infos: List[SheetInfo] = []
        for sheet in self.workbook_root.findall("main:sheets/main:sheet", NS):
            rel_id = sheet.get(qn("r", "id"))
            target = targets.get(rel_id)
            if not target:
                raise TemplateLoadError(
                    f"Sheet {sheet.get('name')!r} has no relationship target for {rel_id!r}"
                )
            infos.append(SheetInfo(
                id=int(sheet.get("sheetId", "0")),
                name=sheet.get("name", ""),
                location_path=resolve_target(self.prefix, target),
                rel_id=rel_id,
            ))
        return infos

    def find_sheet_info(self, sheet: Union[int, str]) -> SheetInfo:
        """Resolve a sheet by numeric id or by name."""
        for info in self.sheets:
            if isinstance(sheet, int) and not isinstance(sheet, bool) and info.id == sheet:
                return info
            if info.name == sheet:
                return info
        if isinstance(sheet, str) and sheet.isdigit():
            return self.find_sheet_info(int(sheet))
        raise SheetNotFoundError(sheet)

    def sheet(self, sheet: Union[int, str]) -> Sheet:
        """The live sheet tree, parsed on first access."""
        info = self.find_sheet_info(sheet)
        loaded = self._sheets.get(info.location_path)
        if loaded is None:
            root = self.package.read_xml(info.location_path)
            loaded = Sheet(info=info, root=root, tables=self._load_tables(info, root))
            self._sheets[info.location_path] = loaded
            logger.debug(
                f"[LOAD] Sheet {info.name!r} from {info.location_path} with {len(loaded.tables)} tables"
            )
        return loaded

    @property
    def loaded_sheets(self) -> List[Sheet]:
        return list(self._sheets.values())

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def _load_tables(self, info: SheetInfo, sheet_root: ET._Element) -> List[NamedTable]:
        parts = sheet_root.findall("main:tableParts/main:tablePart", NS)
        if not parts:
            return []

        rels_path = rels_path_for(info.location_path)
        rels = self.package.read_xml(rels_path)
        targets = {rel.get("Id"): rel.get("Target") for rel in rels.findall("rel:Relationship", NS)}
        sheet_dir = posixpath.dirname(info.location_path)

        tables: List[NamedTable] = []
        for part in parts:
            rel_id = part.get(qn("r", "id"))
            target = targets.get(rel_id)
            if not target:
                raise TemplateLoadError(f"Table part {rel_id!r} not found in {rels_path}")
            path = resolve_target(sheet_dir, target)
            tables.append(NamedTable(location_path=path, root=self.package.read_xml(path)))
        return tables
