# WORKFLOW: Shared pytest fixtures and payload builders for the trade statistics suite.
# Used by: All test modules
# Builders:
# 1. make_table() - Commodity or country table with descriptor and year column groups
# 2. make_payload() - Report payload wrapping tables
# 3. suppressed() - Redacted cell wrapper
#
# Builders return plain dicts shaped like deserialized report JSON.

import pytest


def suppressed(value="0"):
    return {"value": value, "suppressed": True}


def make_table(name, years, rows, descriptors=("HTS Number", "Description"), total=None,
               year_group_label="Annual"):
    """Table with a descriptor column group followed by a homogeneous year group."""
    table = {
        "tableInfo": {"tabName": name},
        "column_groups": [
            {"label": "", "columns": [{"label": label} for label in descriptors]},
            {"label": year_group_label, "columns": [{"label": str(year)} for year in years]},
        ],
        "row_groups": [{"rowsNew": [{"rowEntries": list(row)} for row in rows]}],
    }
    if total is not None:
        table["total"] = {"values": list(total)}
    return table


def make_country_table(name, years, rows, total=None):
    return make_table(name, years, rows, descriptors=("Country",), total=total)


def make_payload(*tables):
    return {"tables": list(tables)}


@pytest.fixture
def basic_payload():
    """Quantity and customs value tables for one HTS10 line."""
    return make_payload(
        make_table("First Unit of Quantity", ["2022"], [["8504310000", "Transformers", "1,000"]]),
        make_table("Customs Value", ["2022"], [["8504310000", "Transformers", "50000"]]),
    )


@pytest.fixture
def landed_payload():
    """CIF and calculated duties for two HTS10 lines rolling up to one HTS6."""
    return make_payload(
        make_table("First Unit of Quantity", ["2022", "2023"], [
            ["8504314000", "Transformers, small", "10", "20"],
            ["8504316000", "Transformers, large", "5", "5"],
        ]),
        make_table("CIF Import Value", ["2022", "2023"], [
            ["8504314000", "Transformers, small", "60", "70"],
            ["8504316000", "Transformers, large", "40", "30"],
        ]),
        make_table("Calculated Duties", ["2022", "2023"], [
            ["8504314000", "Transformers, small", "6", "7"],
            ["8504316000", "Transformers, large", "4", "3"],
        ]),
    )


@pytest.fixture
def country_payload():
    """Per-country CIF table in original row order B, A, C."""
    return make_payload(
        make_country_table(
            "CIF Import Value",
            ["2021", "2022", "2023"],
            [
                ["B", "80", "100", "0"],
                ["A", "90", "100", "0"],
                ["C", "10", "50", "0"],
            ],
        ),
    )
