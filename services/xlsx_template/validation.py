"""Structural consistency checks for a workbook after substitution.

The substitution pass rewrites row numbers, cell references and ranges in
place. These checks confirm the result is still internally consistent:
1. Every shared-string cell points at an existing pool entry
2. Rows are strictly increasing and cells sit on their own row
3. Cells within a row are strictly increasing by column
4. Merged, table and auto-filter ranges parse
5. Table column counts agree with the column list and the range width
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ReferenceParseError
from .package import NS
from .refs import char_to_num, range_width, split_range, split_ref
from .structure import Sheet
from .workbook import Workbook


logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """A single problem found in a sheet."""
    sheet: str
    severity: str  # "error", "warning"
    category: str  # "shared_string", "row_order", "cell_order", "range", "table"
    message: str
    details: Optional[Dict] = None


@dataclass
class ValidationReport:
    """All issues found across the loaded sheets."""
    sheets_checked: List[str] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "error" for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(i.severity == "warning" for i in self.issues)

    def add_issue(self, sheet: str, severity: str, category: str, message: str, details: Dict = None):
        self.issues.append(ValidationIssue(sheet, severity, category, message, details))

    def to_dict(self) -> Dict:
        return {
            "sheets_checked": self.sheets_checked,
            "has_errors": self.has_errors,
            "has_warnings": self.has_warnings,
            "issues": [
                {
                    "sheet": i.sheet,
                    "severity": i.severity,
                    "category": i.category,
                    "message": i.message,
                    "details": i.details,
                }
                for i in self.issues
            ],
        }


def _check_cells(sheet: Sheet, pool_size: int, report: ValidationReport) -> None:
    sheet_data = sheet.sheet_data
    if sheet_data is None:
        return

    previous_row = 0
    for row in sheet_data.findall("main:row", NS):
        row_number = int(row.get("r", previous_row + 1))
        if row_number <= previous_row:
            report.add_issue(
                sheet.name, "error", "row_order",
                f"Row {row_number} follows row {previous_row}",
            )
        previous_row = row_number

        previous_col = 0
        for cell in row.findall("main:c", NS):
            ref = cell.get("r")
            if ref:
                try:
                    cell_ref = split_ref(ref)
                except ReferenceParseError as e:
                    report.add_issue(sheet.name, "error", "range", str(e))
                    continue
                if cell_ref.row != row_number:
                    report.add_issue(
                        sheet.name, "error", "row_order",
                        f"Cell {ref} is inside row {row_number}",
                    )
                col = char_to_num(cell_ref.col)
                if col <= previous_col:
                    report.add_issue(
                        sheet.name, "error", "cell_order",
                        f"Cell {ref} is out of column order in row {row_number}",
                    )
                previous_col = col

            if cell.get("t") == "s":
                v = cell.find("main:v", NS)
                text = (v.text or "").strip() if v is not None else ""
                if not text.isdigit() or int(text) >= pool_size:
                    report.add_issue(
                        sheet.name, "error", "shared_string",
                        f"Cell {ref} points at missing shared string {text!r}",
                        {"pool_size": pool_size},
                    )


def _check_ranges(sheet: Sheet, report: ValidationReport) -> None:
    for merge_cell in sheet.root.findall("main:mergeCells/main:mergeCell", NS):
        try:
            split_range(merge_cell.get("ref", ""))
        except ReferenceParseError as e:
            report.add_issue(sheet.name, "error", "range", f"Merged cell: {e}")

    for table in sheet.tables:
        try:
            width = range_width(table.ref)
        except ReferenceParseError as e:
            report.add_issue(sheet.name, "error", "range", f"Table {table.name!r}: {e}")
            continue

        auto_filter = table.auto_filter
        if auto_filter is not None:
            try:
                split_range(auto_filter.get("ref", ""))
            except ReferenceParseError as e:
                report.add_issue(sheet.name, "error", "range", f"Auto-filter of {table.name!r}: {e}")

        columns = table.columns_element
        if columns is None:
            continue
        actual = len(columns.findall("main:tableColumn", NS))
        declared = int(columns.get("count", actual))
        if declared != actual:
            report.add_issue(
                sheet.name, "error", "table",
                f"Table {table.name!r} declares {declared} columns but has {actual}",
            )
        if width != actual:
            report.add_issue(
                sheet.name, "warning", "table",
                f"Table {table.name!r} range {table.ref} is {width} wide for {actual} columns",
            )


def validate_workbook(workbook: Workbook) -> ValidationReport:
    """Check every sheet that has been loaded (i.e. substituted) so far."""
    report = ValidationReport()
    pool_size = len(workbook.shared_strings)

    for sheet in workbook.index.loaded_sheets:
        report.sheets_checked.append(sheet.name)
        _check_cells(sheet, pool_size, report)
        _check_ranges(sheet, report)

    for issue in report.issues:
        logger.warning(f"[VALIDATE] {issue.sheet}: {issue.message}")
    return report
