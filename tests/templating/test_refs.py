"""Tests for the cell reference codec."""

import sys
from pathlib import Path

# Add project root to path (tests/templating/ -> tests/ -> project root)
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from services.xlsx_template import (
    CellRef,
    ReferenceParseError,
    char_to_num,
    join_range,
    join_ref,
    next_col,
    next_row,
    num_to_char,
    split_range,
    split_ref,
)
from services.xlsx_template.refs import is_range, is_reference, is_within, offset_ref, range_width


class TestColumnLetters:
    """Bijective base-26 column numbering."""

    @pytest.mark.parametrize("letters,number", [
        ("A", 1), ("Z", 26), ("AA", 27), ("AZ", 52), ("BA", 53), ("ZZ", 702), ("AAA", 703), ("XFD", 16384),
    ])
    def test_known_columns(self, letters, number):
        assert char_to_num(letters) == number
        assert num_to_char(number) == letters

    def test_round_trip_every_column(self):
        for number in range(1, 16385):
            assert char_to_num(num_to_char(number)) == number

    def test_lowercase_letters(self):
        assert char_to_num("ab") == 28

    def test_zero_column_rejected(self):
        with pytest.raises(ReferenceParseError):
            num_to_char(0)

    def test_non_letters_rejected(self):
        with pytest.raises(ReferenceParseError):
            char_to_num("A1")


class TestCellRefs:
    def test_split_plain(self):
        ref = split_ref("B4")
        assert ref.col == "B"
        assert ref.row == 4
        assert ref.table is None
        assert not ref.col_absolute and not ref.row_absolute

    def test_split_absolute_and_qualified(self):
        ref = split_ref("'My Sheet'!$AB$12")
        assert ref.table == "'My Sheet'"
        assert ref.col == "AB"
        assert ref.row == 12
        assert ref.col_absolute and ref.row_absolute

    def test_join_is_inverse_of_split(self):
        for text in ["A1", "$C7", "D$9", "Sheet1!$XFD$1048576"]:
            assert join_ref(split_ref(text)) == text

    @pytest.mark.parametrize("bad", ["", "1A", "A0", "ABCD1", "A", "Sheet1!"])
    def test_invalid_refs(self, bad):
        with pytest.raises(ReferenceParseError):
            split_ref(bad)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            split_ref("nope")

    def test_next_row_and_col(self):
        assert next_row("B4") == "B5"
        assert next_col("Z4") == "AA4"
        assert offset_ref("$A$1", rows=2, cols=3) == "$D$3"

    def test_join_from_model(self):
        assert join_ref(CellRef(col="C", row=3, row_absolute=True)) == "C$3"


class TestRanges:
    def test_split_range(self):
        cell_range = split_range("A1:C5")
        assert cell_range.start.col == "A" and cell_range.start.row == 1
        assert cell_range.end.col == "C" and cell_range.end.row == 5

    def test_qualified_range_round_trip(self):
        text = "'Q3 Data'!$A$1:$C$5"
        cell_range = split_range(text)
        assert cell_range.start.table == "'Q3 Data'"
        assert join_range(cell_range) == text

    @pytest.mark.parametrize("bad", ["", "A1", "A1:B2:C3", "A1:", "#REF!"])
    def test_invalid_ranges(self, bad):
        with pytest.raises(ReferenceParseError):
            split_range(bad)

    def test_is_range_and_is_reference(self):
        assert is_range("Sheet1!A1:B2")
        assert not is_range("Sheet1!A1")
        assert is_reference("Sheet1!$A$1")
        assert not is_reference("SUM(A1:A3)")
        assert not is_reference("#REF!")

    def test_is_within_inclusive(self):
        assert is_within("A1", "A1", "C3")
        assert is_within("C3", "A1", "C3")
        assert is_within("B2", split_ref("A1"), split_ref("C3"))
        assert not is_within("D3", "A1", "C3")
        assert not is_within("A4", "A1", "C3")

    def test_range_width(self):
        assert range_width("B2:D9") == 3
