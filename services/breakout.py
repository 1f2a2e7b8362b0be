# WORKFLOW: Per-country breakout ranking ("Top-N plus Others").
# Used by: Trade stats engine (breakout path), stacked and comparison endpoints
# Functions:
# 1. clamp_top_n() - Bound the requested Top-N to the configured range
# 2. resolve_ranking_year() - Explicit year, or the latest year with non-zero data
# 3. rank_breakout() - Stable Top-N ranking with a non-negative Others remainder
# 4. stacked_breakdown() - Top-K plus Others for every year (optionally for selected countries)
# 5. compare_years() - Per-country difference between two years across metrics
#
# Ranking flow: per-country AggregatedSeries -> ranking year -> (name, value) pairs in
# row order -> stable descending sort -> Top-N -> Others = max(0, total - sum(Top-N))

"""
Breakout ranking for per-country trade statistics.
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from api.schemas.response import (
    BreakoutEntry,
    BreakoutResult,
    StackedBreakdownRow,
    YearComparison,
    YearComparisonRow,
)
from core.config import settings
from etl.entries import sort_years
from services.aggregator import AggregatedSeries, series_value, series_years

logger = logging.getLogger(__name__)

AUTO_YEAR = "auto"
TOTAL_NAMES = {"total", "totals", "grand total", "all countries"}

Pair = Tuple[str, float]


def clamp_top_n(top_n: Optional[int]) -> int:
    if top_n is None:
        return settings.default_top_n
    return max(settings.top_n_min, min(settings.top_n_max, int(top_n)))


def is_total_name(name: str) -> bool:
    return name.strip().rstrip(":").strip().lower() in TOTAL_NAMES


def _countries(series: AggregatedSeries, key_order: Optional[Sequence[str]]) -> List[str]:
    names = [key for key in (key_order or []) if key in series]
    names.extend(key for key in series if key not in names)
    return [name for name in names if not is_total_name(name)]


def _grand_total_row(series: AggregatedSeries, year: str) -> Optional[float]:
    for key in series:
        if is_total_name(key):
            return series_value(series, key, year)
    return None


def year_pairs(series: AggregatedSeries, year: str, key_order: Optional[Sequence[str]] = None) -> List[Pair]:
    """(country, value) pairs for one year in original row order; no-data countries are skipped."""
    pairs = []
    for name in _countries(series, key_order):
        value = series_value(series, name, year)
        if value is not None:
            pairs.append((name, value))
    return pairs


def _sort_desc(pairs: List[Pair]) -> List[Pair]:
    # sorted() is stable: equal values keep their row order
    return sorted(pairs, key=lambda pair: -pair[1])


def resolve_ranking_year(
    series: AggregatedSeries,
    years: Sequence[str],
    requested: Optional[str] = AUTO_YEAR,
) -> Optional[str]:
    """
    Pick the year to rank.

    An explicit year present on the axis is used as-is. Otherwise the most
    recent year with at least one non-zero country value wins, which skips a
    just-opened current year that has no data yet.
    """
    if not years:
        return None
    if requested and requested != AUTO_YEAR:
        if requested in years:
            return requested
        logger.info(f"Breakout year {requested} not in series; resolving automatically")

    for year in reversed(list(years)):
        if any(value != 0 for _, value in year_pairs(series, year)):
            return year
    return years[-1]


def rank_breakout(
    series: AggregatedSeries,
    year: Optional[str] = AUTO_YEAR,
    top_n: Optional[int] = None,
    published: Optional[Mapping[str, float]] = None,
    years: Optional[Sequence[str]] = None,
    key_order: Optional[Sequence[str]] = None,
) -> BreakoutResult:
    """
    Rank countries for one year and compute the Others remainder.

    Args:
        series: Per-country aggregated series of one metric
        year: Explicit year label or "auto"
        top_n: Number of ranked entries (clamped to the configured range)
        published: Published grand totals by year, preferred over summing countries
        years: Year axis; defaults to the years present in the series
        key_order: Original row order of the countries (tie-break order)

    Returns:
        BreakoutResult; empty when the series has no years
    """
    top_n = clamp_top_n(top_n)
    axis = sort_years(years) if years else series_years(series)
    ranking_year = resolve_ranking_year(series, axis, year)
    if ranking_year is None:
        return BreakoutResult()

    pairs = year_pairs(series, ranking_year, key_order)
    top = _sort_desc(pairs)[:top_n]

    total = None
    if published and published.get(ranking_year) is not None:
        total = published[ranking_year]
    if total is None:
        total = _grand_total_row(series, ranking_year)
    if total is None:
        total = math.fsum(value for _, value in pairs)

    if top_n >= len(pairs):
        others = 0.0
    else:
        others = max(0.0, total - math.fsum(value for _, value in top))

    return BreakoutResult(
        ranking_year=ranking_year,
        entries=[BreakoutEntry(name=name, value=value) for name, value in top],
        others=others,
        total=total,
    )


def stacked_breakdown(
    series: AggregatedSeries,
    years: Optional[Sequence[str]] = None,
    top_k: Optional[int] = None,
    selected: Optional[Sequence[str]] = None,
    published: Optional[Mapping[str, float]] = None,
    key_order: Optional[Sequence[str]] = None,
) -> List[StackedBreakdownRow]:
    """
    Top-K plus Others for every year.

    With ``selected`` countries the total becomes their sum; if the selection
    has no value in a year, the positive Top-K of all countries is used instead.
    Years whose total is not positive are skipped.
    """
    top_k = settings.stacked_top_n if top_k is None else max(1, int(top_k))
    axis = sort_years(years) if years else series_years(series)
    rows: List[StackedBreakdownRow] = []

    for year in axis:
        pairs = year_pairs(series, year, key_order)
        base_total = None
        if published and published.get(year) is not None:
            base_total = published[year]
        if not base_total:
            base_total = _grand_total_row(series, year) or math.fsum(v for _, v in pairs)
        if base_total <= 0:
            continue

        positive = [pair for pair in pairs if pair[1] > 0]
        total = base_total
        if selected:
            by_name = dict(pairs)
            chosen = [(name, by_name.get(name, 0.0)) for name in selected]
            total = math.fsum(v for _, v in chosen)
            top = _sort_desc(chosen)[:top_k]
            if math.fsum(v for _, v in top) == 0:
                top = _sort_desc(positive)[:top_k]
                total = math.fsum(v for _, v in top)
        else:
            top = _sort_desc(positive)[:top_k]

        rows.append(StackedBreakdownRow(
            year=year,
            entries=[BreakoutEntry(name=name, value=value) for name, value in top],
            others=max(0.0, total - math.fsum(v for _, v in top)),
            total=total,
        ))
    return rows


def _default_years(years: List[str], year_a: Optional[str], year_b: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    a = year_a if year_a in years else (years[-1] if years else None)
    b = year_b if year_b in years else (years[-2] if len(years) > 1 else None)
    return a, b


def compare_years(
    series_by_metric: Mapping[str, AggregatedSeries],
    year_a: Optional[str] = None,
    year_b: Optional[str] = None,
    mode: str = "abs",
    sort: str = "desc",
    sort_metric: Optional[str] = None,
    top_n: Optional[int] = None,
    key_order: Optional[Sequence[str]] = None,
) -> YearComparison:
    """
    Per-country change between two years for each metric.

    The later year is the target and the earlier one the base. ``mode`` is
    "abs" (target - base) or "pct" ((target - base) / |base|, skipped when the
    base is zero). Countries missing either value are skipped for that metric.
    Rows are sorted "desc", "asc" or "abs" by ``sort_metric`` and truncated.
    """
    years: List[str] = []
    for series in series_by_metric.values():
        years.extend(series_years(series))
    years = sort_years(years)
    a, b = _default_years(years, year_a, year_b)
    if a is None or b is None:
        return YearComparison(mode=mode)
    target, base = (a, b) if int(a) >= int(b) else (b, a)

    rows: Dict[str, Dict[str, float]] = {}
    order: List[str] = []
    for metric, series in series_by_metric.items():
        for name in _countries(series, key_order):
            target_value = series_value(series, name, target)
            base_value = series_value(series, name, base)
            if target_value is None or base_value is None:
                continue
            if mode == "pct":
                if base_value == 0:
                    continue
                diff = (target_value - base_value) / abs(base_value)
            else:
                diff = target_value - base_value
            if name not in rows:
                rows[name] = {}
                order.append(name)
            rows[name][metric] = diff

    metrics = list(series_by_metric)
    if sort_metric not in metrics:
        sort_metric = "quantity" if "quantity" in metrics else (metrics[0] if metrics else None)

    def sort_value(name: str) -> float:
        value = rows[name].get(sort_metric, 0.0)
        return abs(value) if sort == "abs" else value

    ordered = sorted(order, key=sort_value, reverse=(sort != "asc"))
    limit = max(1, int(top_n)) if top_n is not None else len(ordered)
    return YearComparison(
        target_year=target,
        base_year=base,
        mode=mode,
        rows=[YearComparisonRow(name=name, diffs=rows[name]) for name in ordered[:limit]],
    )
