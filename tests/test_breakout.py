# WORKFLOW: Tests for breakout ranking, stacked breakdowns and year comparison.
# Used by: CI pipelines, development testing
# Test scenarios:
# 1. Auto ranking year skips an all-zero latest year
# 2. Stable tie-break by original row order and the Others remainder
# 3. Seeded randomized checks of the breakout invariants
# 4. Published totals, grand-total rows and Top-N clamping
# 5. Stacked Top-K per year and Year-A/Year-B comparison

import random

import pytest

from etl.row_parser import ParsedRow
from services.aggregator import aggregate
from services.breakout import (
    clamp_top_n,
    compare_years,
    rank_breakout,
    resolve_ranking_year,
    stacked_breakdown,
)


def country_series(rows):
    return aggregate([
        ParsedRow(key=name, rollup_key=name, values_by_year=values) for name, values in rows
    ])


TIES = country_series([
    ("B", {"2021": 80.0, "2022": 100.0, "2023": 0.0}),
    ("A", {"2021": 90.0, "2022": 100.0, "2023": 0.0}),
    ("C", {"2021": 10.0, "2022": 50.0, "2023": 0.0}),
])


def test_auto_year_skips_all_zero_latest_year():
    assert resolve_ranking_year(TIES, ["2021", "2022", "2023"]) == "2022"


def test_explicit_year_and_absent_year_fallback():
    assert resolve_ranking_year(TIES, ["2021", "2022", "2023"], "2021") == "2021"
    assert resolve_ranking_year(TIES, ["2021", "2022", "2023"], "1999") == "2022"


def test_no_data_uses_latest_year():
    empty = country_series([("A", {"2022": 0.0, "2023": 0.0})])
    assert resolve_ranking_year(empty, ["2022", "2023"]) == "2023"


def test_top_n_ties_keep_row_order():
    result = rank_breakout(TIES, top_n=2, key_order=["B", "A", "C"])
    assert result.ranking_year == "2022"
    assert [(e.name, e.value) for e in result.entries] == [("B", 100.0), ("A", 100.0)]
    assert result.others == 50.0
    assert result.total == 250.0


def test_others_zero_when_top_n_covers_all():
    result = rank_breakout(TIES, year="2021", top_n=5)
    assert [e.name for e in result.entries] == ["A", "B", "C"]
    assert result.others == 0.0


def test_published_total_preferred_and_others_never_negative():
    result = rank_breakout(TIES, year="2022", top_n=1, published={"2022": 300.0})
    assert result.total == 300.0
    assert result.others == 200.0
    result = rank_breakout(TIES, year="2022", top_n=1, published={"2022": 50.0})
    assert result.others == 0.0


def test_grand_total_row_excluded_and_used_as_total():
    series = country_series([
        ("Total", {"2022": 400.0}),
        ("A", {"2022": 100.0}),
        ("B", {"2022": 200.0}),
    ])
    result = rank_breakout(series, top_n=1)
    assert [e.name for e in result.entries] == ["B"]
    assert result.total == 400.0
    assert result.others == 200.0


def test_clamp_top_n():
    assert clamp_top_n(None) == 5
    assert clamp_top_n(0) == 1
    assert clamp_top_n(50) == 20
    assert clamp_top_n(7) == 7


def test_empty_series_gives_empty_result():
    result = rank_breakout({})
    assert result.ranking_year is None
    assert result.entries == []
    assert result.others == 0.0


@pytest.mark.parametrize("seed", range(25))
def test_breakout_invariants(seed):
    rng = random.Random(seed)
    years = ["2021", "2022", "2023"]
    rows = [
        (f"Country {i}", {y: float(rng.randint(0, 20)) * 10 for y in years})
        for i in range(rng.randint(1, 12))
    ]
    series = country_series(rows)
    top_n = rng.randint(1, 20)
    result = rank_breakout(series, top_n=top_n, key_order=[name for name, _ in rows])

    values = [e.value for e in result.entries]
    assert result.others >= 0
    assert len(result.entries) <= top_n
    assert values == sorted(values, reverse=True)

    # Equal values keep the original row order
    order = [name for name, _ in rows]
    for left, right in zip(result.entries, result.entries[1:]):
        if left.value == right.value:
            assert order.index(left.name) < order.index(right.name)


def test_stacked_breakdown_top_k_per_year():
    rows = stacked_breakdown(TIES, top_k=1)
    assert [r.year for r in rows] == ["2021", "2022"]
    assert [(e.name, e.value) for e in rows[0].entries] == [("A", 90.0)]
    assert rows[0].others == 90.0
    assert rows[1].total == 250.0


def test_stacked_breakdown_selected_countries():
    rows = stacked_breakdown(TIES, years=["2022"], top_k=3, selected=["C", "A"])
    assert [e.name for e in rows[0].entries] == ["A", "C"]
    assert rows[0].total == 150.0
    assert rows[0].others == 0.0


def test_compare_years_abs_and_pct():
    by_metric = {"cif": TIES}
    comparison = compare_years(by_metric, "2021", "2022", mode="abs")
    assert comparison.target_year == "2022"
    assert comparison.base_year == "2021"
    assert [(r.name, r.diffs["cif"]) for r in comparison.rows] == [("C", 40.0), ("B", 20.0), ("A", 10.0)]

    pct = compare_years(by_metric, "2022", "2021", mode="pct", sort="asc", top_n=1)
    assert [r.name for r in pct.rows] == ["A"]
    assert pct.rows[0].diffs["cif"] == pytest.approx(10.0 / 90.0)


def test_compare_years_defaults_to_latest_two():
    comparison = compare_years({"cif": TIES})
    assert (comparison.target_year, comparison.base_year) == ("2023", "2022")
    assert comparison.rows[0].diffs["cif"] == -50.0
