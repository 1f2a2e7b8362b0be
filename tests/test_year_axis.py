# WORKFLOW: Unit tests for year axis resolution.
# Used by: CI pipelines, development testing
# Test scenarios:
# 1. Homogeneous year group wins (longest, first on ties)
# 2. Mixed groups fall back to the last group with a year run
# 3. columnInfo fallback with 1-based indices
# 4. Malformed tables resolve to an empty axis

from conftest import make_table

from etl.year_axis import (
    SOURCE_ANY_GROUP,
    SOURCE_COLUMN_GROUP,
    SOURCE_COLUMN_INFO,
    axis_from_column_info,
    flatten_columns,
    resolve_year_axis,
    union_years,
)


def test_homogeneous_group_with_indices():
    table = make_table("CIF Import Value", ["2021", "2022", "2023"], [])
    axis = resolve_year_axis(table)
    assert axis.years == ("2021", "2022", "2023")
    assert axis.column_indices == (2, 3, 4)
    assert axis.source == SOURCE_COLUMN_GROUP
    assert axis.has_indices


def test_longest_homogeneous_group_wins():
    table = {
        "column_groups": [
            {"label": "", "columns": [{"label": "Country"}]},
            {"label": "Short", "columns": [{"label": "2020"}]},
            {"label": "Long", "columns": [{"label": "2021"}, {"label": "2022"}]},
        ]
    }
    axis = resolve_year_axis(table)
    assert axis.years == ("2021", "2022")
    assert axis.column_indices == (2, 3)


def test_mixed_group_uses_longest_year_run_of_last_group():
    table = {
        "column_groups": [
            {"label": "", "columns": [
                {"label": "HTS Number"}, {"label": "Description"},
                {"label": "2022 Annual"}, {"label": "2023 Annual"}, {"label": "% Change"},
            ]},
        ]
    }
    axis = resolve_year_axis(table)
    assert axis.years == ("2022", "2023")
    assert axis.column_indices == (2, 3)
    assert axis.source == SOURCE_ANY_GROUP


def test_column_info_fallback_is_one_based():
    table = {
        "column_groups": [{"label": "", "columns": [{"label": "Country"}]}],
        "row_groups": [{
            "columnInfo": [
                {"type": "descriptor", "columnIndex": 1},
                {"type": "data", "columnLabel": "2022", "columnIndex": 2},
                {"type": "data", "queryResultLabel": "Year 2023", "columnIndex": 3},
            ],
            "rowsNew": [],
        }],
    }
    axis = resolve_year_axis(table)
    assert axis.years == ("2022", "2023")
    assert axis.column_indices == (1, 2)
    assert axis.source == SOURCE_COLUMN_INFO


def test_column_info_without_indices_keeps_years_only():
    group = {"columnInfo": [{"type": "data", "columnLabel": "2021"}, {"type": "data"}]}
    axis = axis_from_column_info(group, default_year="2023")
    assert axis.years == ("2021", "2023")
    assert not axis.has_indices


def test_malformed_tables_resolve_empty():
    for table in (None, {}, {"column_groups": "nope"}, {"column_groups": [{"columns": [{"label": "Desc"}]}]}):
        assert resolve_year_axis(table).is_empty


def test_flatten_and_union():
    a = resolve_year_axis(make_table("Customs Value", ["2021", "2022"], []))
    b = resolve_year_axis(make_table("Calculated Duties", ["2022", "2023"], []))
    assert union_years([a, b]) == ["2021", "2022", "2023"]
    assert flatten_columns(make_table("x", ["2022"], [])) == ["HTS Number", "Description", "2022"]
