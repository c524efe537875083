"""Tests for loading, sheet lookup and generating workbooks."""

import sys
import zipfile
from io import BytesIO
from pathlib import Path

# Add project root to path (tests/templating/ -> tests/ -> project root)
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

import services.xlsx_template as xlsx_template
from services.xlsx_template import (
    SheetNotFoundError,
    TemplateError,
    TemplateLoadError,
    Workbook,
)
from xlsx_builder import build_xlsx, cell_text, make_workbook, read_part, row, sheet_cells, string_cell


def _two_sheets() -> bytes:
    return build_xlsx(
        ["${title}", "${total}"],
        [
            {"name": "Summary", "rows": row(1, string_cell("A1", 0))},
            {"name": "Detail", "rows": row(1, string_cell("A1", 1))},
        ],
    )


def _rezip(data: bytes, drop=(), replace=None) -> bytes:
    replace = replace or {}
    buffer = BytesIO()
    with zipfile.ZipFile(BytesIO(data)) as zf_in, zipfile.ZipFile(buffer, "w") as zf_out:
        for item in zf_in.infolist():
            if item.filename in drop:
                continue
            zf_out.writestr(item.filename, replace.get(item.filename, zf_in.read(item.filename)))
    return buffer.getvalue()


class TestLoad:

    def test_sheets_listed_in_order(self):
        wb = Workbook(_two_sheets())
        assert [(s.id, s.name) for s in wb.sheets] == [(1, "Summary"), (2, "Detail")]
        assert wb.sheets[1].location_path == "xl/worksheets/sheet2.xml"

    def test_not_a_zip(self):
        with pytest.raises(TemplateLoadError):
            Workbook(b"definitely not a zip file")

    def test_missing_root_relationships(self):
        with pytest.raises(TemplateLoadError):
            Workbook(_rezip(_two_sheets(), drop={"_rels/.rels"}))

    def test_missing_shared_strings_part(self):
        with pytest.raises(TemplateLoadError):
            Workbook(_rezip(_two_sheets(), drop={"xl/sharedStrings.xml"}))

    def test_malformed_workbook_xml(self):
        with pytest.raises(TemplateLoadError):
            Workbook(_rezip(_two_sheets(), replace={"xl/workbook.xml": b"<workbook"}))

    def test_load_error_is_template_error(self):
        with pytest.raises(TemplateError):
            Workbook(b"")

    def test_nothing_loaded(self):
        with pytest.raises(TemplateError):
            Workbook().generate()

    def test_load_template_alias(self):
        wb = Workbook().load_template(_two_sheets())
        assert len(wb.sheets) == 2


class TestSheetLookup:

    def test_by_id_name_and_numeric_string(self):
        wb = Workbook(_two_sheets())
        assert wb.sheet(2).name == "Detail"
        assert wb.sheet("Detail").name == "Detail"
        assert wb.sheet("2").name == "Detail"

    def test_same_tree_per_session(self):
        wb = Workbook(_two_sheets())
        assert wb.sheet(1) is wb.sheet("Summary")

    @pytest.mark.parametrize("key", [3, "Missing", "7"])
    def test_unknown_sheet(self, key):
        wb = Workbook(_two_sheets())
        with pytest.raises(SheetNotFoundError) as exc_info:
            wb.substitute(key, {})
        assert isinstance(exc_info.value, LookupError)

    def test_placeholders_by_cell(self):
        wb = make_workbook(
            ["Hello ${name}", "${table:rows.qty}", "plain"],
            row(1, string_cell("A1", 0), string_cell("B1", 2)) + row(2, string_cell("A2", 1)),
        )
        found = wb.placeholders(1)

        assert set(found) == {"A1", "A2"}
        assert found["A1"][0].name == "name"
        assert found["A2"][0].is_table
        assert found["A2"][0].key == "qty"


class TestGenerate:

    def test_round_trip(self):
        wb = Workbook(_two_sheets())
        wb.substitute("Detail", {"total": 12})
        output = wb.generate()

        reloaded = Workbook(output)
        assert [s.name for s in reloaded.sheets] == ["Summary", "Detail"]
        assert cell_text(reloaded, "Detail", "A1") == "12"
        assert cell_text(reloaded, "Summary", "A1") == "${title}"

    def test_untouched_sheet_is_byte_identical(self):
        template = _two_sheets()
        wb = Workbook(template)
        wb.substitute(2, {"total": 12})
        output = wb.generate()

        with zipfile.ZipFile(BytesIO(template)) as before, zipfile.ZipFile(BytesIO(output)) as after:
            assert before.namelist() == after.namelist()
            assert before.read("xl/worksheets/sheet1.xml") == after.read("xl/worksheets/sheet1.xml")

    def test_parts_keep_declaration_and_namespaces(self):
        wb = make_workbook(["${x}"], row(1, string_cell("A1", 0)))
        wb.substitute(1, {"x": "y"})
        output = wb.generate()

        with zipfile.ZipFile(BytesIO(output)) as zf:
            sheet = zf.read("xl/worksheets/sheet1.xml")
        assert sheet.startswith(b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>')
        assert b'mc:Ignorable="x14ac"' in sheet
        assert b"x14ac:dyDescent" in sheet

    def test_shared_strings_counts_updated(self):
        wb = make_workbook(["Hi ${x}"], row(1, string_cell("A1", 0)))
        wb.substitute(1, {"x": "there"})
        sst = read_part(wb.generate(), "xl/sharedStrings.xml")

        assert sst.get("count") == "2"
        assert sst.get("uniqueCount") == "2"

    def test_stored_compression(self):
        data = build_xlsx(["${x}"], [{"name": "Sheet1", "rows": row(1, string_cell("A1", 0))}])
        wb = Workbook(data, compression="stored")
        wb.substitute(1, {"x": "y"})
        output = wb.generate()

        with zipfile.ZipFile(BytesIO(output)) as zf:
            assert zf.getinfo("xl/worksheets/sheet1.xml").compress_type == zipfile.ZIP_STORED

    def test_substitute_several_sheets(self):
        wb = Workbook(_two_sheets())
        wb.substitute(1, {"title": "Q3"})
        wb.substitute("Detail", {"total": 5})
        output = wb.generate()

        assert sheet_cells(read_part(output, "xl/worksheets/sheet2.xml"))["A1"] == (None, "5")
        assert cell_text(Workbook(output), 1, "A1") == "Q3"

    def test_module_level_functions(self):
        wb = xlsx_template.load(_two_sheets())
        stats = xlsx_template.substitute(wb, "Summary", {"title": "Q3"})
        output = xlsx_template.generate(wb)

        assert stats.placeholders_substituted == 1
        assert cell_text(Workbook(output), "Summary", "A1") == "Q3"

    def test_empty_mapping_round_trip(self):
        data = build_xlsx(
            ["${table:rows.name}", "Name"],
            [{
                "name": "Sheet1",
                "rows": row(1, string_cell("A1", 1)) + row(2, string_cell("A2", 0)),
                "merges": ["A2:B2"],
                "tables": [{"name": "People", "ref": "A1:A2", "columns": ["Name"]}],
            }],
        )
        wb = Workbook(data)
        wb.substitute(1, {})
        reloaded = Workbook(wb.generate())
        original = Workbook(data)

        assert reloaded.shared_strings.to_list() == original.shared_strings.to_list()
        assert reloaded.tables(1) == original.tables(1)
        assert reloaded.placeholders(1) == original.placeholders(1)
        assert sheet_cells(reloaded.sheet(1).root) == sheet_cells(original.sheet(1).root)
