# WORKFLOW: Unit tests for row parsing.
# Used by: CI pipelines, development testing
# Test scenarios:
# 1. HTS10 rows map to HTS6 rollup keys with index-exact year mapping
# 2. Known keys win over other code-like cells; data cells never become keys
# 3. Country layout, unit detection and the single-context TOTAL fallback
# 4. Trailing positional window and right alignment
# 5. Suppressed cells and rows without entries

from conftest import make_table, suppressed

from etl.entries import decode_entries
from etl.row_parser import (
    CONTEXT_COUNTRY,
    MAPPING_INDEX,
    MAPPING_POSITIONAL,
    TOTAL_KEY,
    clean_hts_to_six,
    map_trailing_window,
    parse_row,
    parse_table,
    table_rows,
)
from etl.year_axis import YearAxis, resolve_year_axis

AXIS = YearAxis(years=("2022", "2023"), column_indices=(3, 4))


def test_clean_hts_to_six():
    assert clean_hts_to_six("8504.31.4000") == "850431"
    assert clean_hts_to_six(None) == ""


def test_hts10_row_with_unit_and_index_mapping():
    row = {"rowEntries": ["8504314000", "Transformers", "kilograms", "1,000", "2,500"]}
    parsed = parse_row(row, AXIS, [])
    assert parsed.key == "8504314000"
    assert parsed.rollup_key == "850431"
    assert parsed.description == "Transformers"
    assert parsed.unit == "kilograms"
    assert parsed.values_by_year == {"2022": 1000.0, "2023": 2500.0}


def test_known_key_located_and_data_cells_ignored():
    axis = YearAxis(years=("2022",), column_indices=(2,))
    row = {"entries": ["8504310000", "Transformers", "850431"]}
    parsed = parse_row(row, axis, ["8504.31"])
    assert parsed.key == "8504310000"
    assert parsed.values_by_year == {"2022": 850431.0}


def test_country_layout_uses_quantity_description_as_unit():
    axis = YearAxis(years=("2022", "2023"), column_indices=(2, 3))
    parsed = parse_row({"rowEntries": ["Canada", "kilograms", "10", "20"]}, axis, [], context=CONTEXT_COUNTRY)
    assert parsed.key == "Canada"
    assert parsed.rollup_key == "Canada"
    assert parsed.unit == "kilograms"
    assert parsed.values_by_year == {"2022": 10.0, "2023": 20.0}


def test_single_context_row_falls_back_to_known_key_or_total():
    axis = YearAxis(years=("2022", "2023"))
    row = {"rowEntries": ["All commodities", "5", "6"]}
    assert parse_row(row, axis, []).key == TOTAL_KEY
    assert parse_row(row, axis, []).rollup_key == TOTAL_KEY
    parsed = parse_row(row, axis, ["8504310000"])
    assert parsed.key == "850431"
    assert parsed.values_by_year == {"2022": 5.0, "2023": 6.0}


def test_positional_window_is_right_aligned():
    data = decode_entries(["7"])
    assert map_trailing_window(data, ["2021", "2022", "2023"]) == {"2021": None, "2022": None, "2023": 7.0}
    data = decode_entries(["1", "2", "3", "4"])
    assert map_trailing_window(data, ["2022", "2023"]) == {"2022": 3.0, "2023": 4.0}


def test_positional_mapping_without_indices():
    axis = YearAxis(years=("2022", "2023"))
    row = {"rowEntries": ["8504314000", "Transformers", "11", "12"]}
    parsed = parse_row(row, axis, [], mapping=MAPPING_POSITIONAL)
    assert parsed.description == "Transformers"
    assert parsed.values_by_year == {"2022": 11.0, "2023": 12.0}


def test_index_mapping_requires_indices():
    axis = YearAxis(years=("2022",))
    parsed = parse_row({"rowEntries": ["8504314000", "x", "1"]}, axis, [], mapping=MAPPING_INDEX)
    assert parsed.values_by_year == {"2022": None}
    assert not parsed.has_data


def test_working_years_are_filled_with_none():
    axis = YearAxis(years=("2022",), column_indices=(2,))
    parsed = parse_row({"rowEntries": ["8504314000", "x", "1"]}, axis, [], years=["2021", "2022", "2023"])
    assert parsed.values_by_year == {"2022": 1.0, "2021": None, "2023": None}


def test_suppressed_cell_is_none():
    row = {"rowEntries": ["8504314000", "Transformers", "kilograms", "5", suppressed("0")]}
    parsed = parse_row(row, AXIS, [])
    assert parsed.values_by_year["2022"] == 5.0
    assert parsed.values_by_year["2023"] is None


def test_rows_without_entries_are_skipped():
    assert parse_row({"cells": []}, AXIS, []) is None
    assert parse_row("garbage", AXIS, []) is None


def test_rows_new_preferred_over_rows():
    table = {"row_groups": [{"rowsNew": [{"rowEntries": ["a"]}], "rows": [{"rowEntries": ["b"]}]},
                            {"rows": [{"rowEntries": ["c"]}]}]}
    assert [r["rowEntries"][0] for r in table_rows(table)] == ["a", "c"]


def test_parse_table_against_resolved_axis():
    table = make_table("Customs Value", ["2022", "2023"], [
        ["8504314000", "Transformers, small", "1", "2"],
        ["8504316000", "Transformers, large", "3", "Not Valid"],
    ])
    rows = parse_table(table, resolve_year_axis(table), [])
    assert [r.rollup_key for r in rows] == ["850431", "850431"]
    assert rows[1].values_by_year == {"2022": 3.0, "2023": None}


def test_unit_guessed_from_descriptor_text():
    axis = YearAxis(years=("2022",), column_indices=(2,))
    parsed = parse_row({"rowEntries": ["8504314000", "Transformers (number)", "3"]}, axis, [])
    assert parsed.unit == "Transformers (number)"
    cotton = parse_row({"rowEntries": ["5201000000", "Cotton, raw", "3"]}, axis, [])
    assert cotton.unit == ""


def test_description_may_start_with_a_digit():
    row = {"rowEntries": ["8504314000", "3-phase transformers", "kilograms", "1", "2"]}
    parsed = parse_row(row, AXIS, [])
    assert parsed.description == "3-phase transformers"
    assert parsed.unit == "kilograms"
    assert parsed.values_by_year == {"2022": 1.0, "2023": 2.0}

    # A plain number after the key is data, not a description
    axis = YearAxis(years=("2022", "2023"))
    parsed = parse_row({"rowEntries": ["8504314000", "1,500", "2"]}, axis, [], mapping=MAPPING_POSITIONAL)
    assert parsed.description == ""
    assert parsed.values_by_year == {"2022": 1500.0, "2023": 2.0}
