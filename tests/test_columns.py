"""
Tests for header alias resolution and value normalization.
"""

import pytest

from race_timing.ingestion.columns import (
    NOT_FOUND,
    cell,
    find_column,
    normalize_gender,
    resolve_category,
)


class TestFindColumn:
    """Tests for find_column."""

    def test_exact_alias(self):
        assert find_column(["No", "EPC", "Times"], "epc") == 1

    def test_alias_as_substring(self):
        assert find_column(["Chip EPC Code", "Finish"], "epc") == 0

    def test_case_and_whitespace_normalized(self):
        assert find_column(["EPC", "  Nama   Lengkap "], "name") == 1

    def test_newline_in_header(self):
        assert find_column(["EPC", "Jenis\nKelamin"], "gender") == 1

    def test_first_match_wins(self):
        assert find_column(["EPC", "Start Time", "Finish Time"], "times") == 1

    def test_indonesian_time_header(self):
        assert find_column(["EPC", "Jam"], "times") == 1

    def test_not_found(self):
        assert find_column(["Bib", "Name"], "epc") == NOT_FOUND

    def test_custom_alias_table(self):
        assert find_column(["Chip", "Clock"], "epc", aliases={"epc": ["chip"]}) == 0


class TestCell:
    """Tests for cell."""

    def test_short_row(self):
        assert cell(["A1"], 3) == ""

    def test_missing_column(self):
        assert cell(["A1"], NOT_FOUND) == ""

    def test_trims(self):
        assert cell([" A1 "], 0) == "A1"


class TestNormalizeGender:
    """Tests for normalize_gender."""

    @pytest.mark.parametrize("raw", ["F", "female", "Perempuan", "WANITA", "woman", "P"])
    def test_female(self, raw):
        assert normalize_gender(raw) == "Female"

    @pytest.mark.parametrize("raw", ["M", "Male", "Laki-laki", "pria", "L", "men"])
    def test_male(self, raw):
        assert normalize_gender(raw) == "Male"

    @pytest.mark.parametrize("raw", ["", None, "X", "n/a"])
    def test_unknown(self, raw):
        assert normalize_gender(raw) == "Unknown"


class TestResolveCategory:
    """Tests for resolve_category."""

    def test_exact_key(self):
        assert resolve_category("5K Female", "M") == "5K Female"

    def test_distance_with_female_gender(self):
        assert resolve_category("10K", "Perempuan") == "10K Female"

    def test_distance_with_male_gender(self):
        assert resolve_category("10 km", "L") == "10K Male"

    def test_unknown_gender_uses_male_key(self):
        assert resolve_category("5k", "") == "5K Male"

    def test_empty_category_falls_back_to_first_key(self):
        assert resolve_category("", "F") == "10K Male"

    def test_unmatched_falls_back_to_first_key(self):
        assert resolve_category("Half Marathon", "F") == "10K Male"

    def test_substring_match_on_custom_keys(self):
        assert resolve_category("Kids race", "", ("Open", "Kids")) == "Kids"

    def test_distance_without_gender_in_keys(self):
        assert resolve_category("10 KM", "F", ("21K", "10K")) == "10K"

    def test_empty_keys_rejected(self):
        with pytest.raises(ValueError):
            resolve_category("10K", "M", ())
