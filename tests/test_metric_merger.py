# WORKFLOW: Tests for metric merging, landed derivation and reconciliation.
# Used by: CI pipelines, development testing
# Test scenarios:
# 1. Basic merge of quantity and value tables
# 2. Landed derivation (110) and landed_check against a published value (112 -> 2)
# 3. Period warning when the quantity table is absent
# 4. Reconciliation entries and series metadata

from api.schemas.response import LandedSource
from etl.row_parser import ParsedRow
from services.aggregator import aggregate
from services.metric_merger import (
    PERIOD_WARNING_QUANTITY,
    LandedFormula,
    build_reconciliation,
    build_series_meta,
    derive_landed_series,
    merge_metrics,
)


def series(key, **values):
    return aggregate([ParsedRow(key=key, rollup_key=key[:6], values_by_year=values)])


def test_basic_merge():
    by_metric = {
        "quantity": aggregate([ParsedRow(key="8504310000", rollup_key="850431", values_by_year={"2022": 1000.0})]),
        "value": aggregate([ParsedRow(key="8504310000", rollup_key="850431", values_by_year={"2022": 50000.0})]),
    }
    records = merge_metrics(by_metric, ["2022"], formula=LandedFormula())
    assert len(records) == 1
    record = records[0]
    assert record.rollup_key == "850431"
    assert record.year == "2022"
    assert record.quantity == 1000.0
    assert record.value == 50000.0
    assert record.cif is None
    assert record.landed is None
    assert record.landed_check is None
    assert record.unit_value == 50.0
    assert record.period_warning is None


def test_landed_derived_without_published_value():
    by_metric = {
        "quantity": series("850431", **{"2022": 1.0}),
        "cif": series("850431", **{"2022": 100.0}),
        "calc_duties": series("850431", **{"2022": 10.0}),
    }
    record = merge_metrics(by_metric, ["2022"], formula=LandedFormula())[0]
    assert record.landed == 110.0
    assert record.landed_check is None
    assert record.landed_source == LandedSource.DERIVED


def test_landed_check_against_published_value():
    by_metric = {
        "quantity": series("850431", **{"2022": 1.0}),
        "cif": series("850431", **{"2022": 100.0}),
        "calc_duties": series("850431", **{"2022": 10.0}),
        "landed": series("850431", **{"2022": 112.0}),
    }
    record = merge_metrics(by_metric, ["2022"], formula=LandedFormula(), tolerance=1.0)[0]
    assert record.landed == 112.0
    assert record.landed_check == 2.0
    assert record.landed_source == LandedSource.PUBLISHED
    assert record.landed_mismatch is True


def test_landed_formula_with_optional_charges():
    values = {"cif": 100.0, "calc_duties": 10.0, "charges": 5.0}
    assert LandedFormula.from_flag(True).derive(values) == 115.0
    assert LandedFormula.from_flag(False).derive(values) == 110.0
    assert LandedFormula.from_flag(True).derive({"cif": 100.0, "calc_duties": 10.0}) == 110.0
    assert LandedFormula().derive({"cif": 100.0}) is None


def test_period_warning_when_quantity_absent():
    by_metric = {"value": series("850431", **{"2023": 10.0})}
    record = merge_metrics(by_metric, ["2023"], formula=LandedFormula())[0]
    assert record.period_warning == PERIOD_WARNING_QUANTITY
    assert record.quantity is None
    assert record.unit_value is None


def test_missing_metric_yields_null_fields_over_full_year_axis():
    by_metric = {"quantity": series("850431", **{"2022": 3.0})}
    records = merge_metrics(by_metric, ["2021", "2022"], formula=LandedFormula())
    assert [(r.year, r.quantity, r.value) for r in records] == [("2021", None, None), ("2022", 3.0, None)]


def test_key_order_then_sorted_remainder():
    by_metric = {
        "quantity": aggregate([
            ParsedRow(key="a", rollup_key="900000", values_by_year={"2022": 1.0}),
            ParsedRow(key="b", rollup_key="100000", values_by_year={"2022": 1.0}),
            ParsedRow(key="c", rollup_key="500000", values_by_year={"2022": 1.0}),
        ])
    }
    records = merge_metrics(by_metric, ["2022"], formula=LandedFormula(), key_order=["500000"])
    assert [r.rollup_key for r in records] == ["500000", "100000", "900000"]


def test_reconciliation_reports_details_and_mismatch():
    cif = aggregate([
        ParsedRow(key="8504314000", rollup_key="850431", values_by_year={"2022": 60.0}),
        ParsedRow(key="8504316000", rollup_key="850431", values_by_year={"2022": 40.0}),
    ])
    records = merge_metrics({"quantity": {}, "cif": cif}, ["2022"], formula=LandedFormula())
    entries = build_reconciliation(cif, records, "cif", tolerance=1.0)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.total == 100.0
    assert [(d.key, d.value) for d in entry.details] == [("8504314000", 60.0), ("8504316000", 40.0)]
    assert entry.final == 100.0
    assert entry.diff == 0.0
    assert entry.mismatch is False


def test_derived_landed_series_details_name_summands():
    by_metric = {
        "cif": series("850431", **{"2022": 100.0, "2023": 50.0}),
        "calc_duties": series("850431", **{"2022": 10.0}),
    }
    landed = derive_landed_series(by_metric, LandedFormula())
    bucket = landed["850431"]["2022"]
    assert bucket.total == 110.0
    assert bucket.details == [("cif", 100.0), ("calc_duties", 10.0)]
    assert "2023" not in landed["850431"]


def test_series_meta_only_for_non_empty_metrics():
    by_metric = {"quantity": series("850431", **{"2022": 2.0}), "value": series("850431", **{"2022": 8.0})}
    records = merge_metrics(by_metric, ["2022"], formula=LandedFormula())
    meta = build_series_meta(records)
    assert [m.key for m in meta] == ["850431-quantity", "850431-value"]
    assert meta[1].label == "850431 - Customs Value / Balance"
