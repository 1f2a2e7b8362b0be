# WORKFLOW: Roll up parsed rows into per-key, per-year sums.
# Used by: Trade stats engine, metric merger, breakout ranking
# Functions:
# 1. aggregate() - Fold ParsedRows into {rollup_key: {year: AggregateBucket}}
# 2. series_value() - Total for one (rollup_key, year)
# 3. series_years() - Years present in a series
# 4. published_totals() - Grand totals from a table's aggregate row
#
# Aggregation flow: ParsedRow[] -> drop empty rollup keys and None values -> sum per bucket
# Totals use math.fsum so the result does not depend on row order.

"""
Aggregation of parsed trade statistics rows.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from etl.entries import decode_entries, sort_years
from etl.row_parser import ParsedRow, map_total_values
from etl.year_axis import YearAxis

DetailEntry = Tuple[str, float]


@dataclass
class AggregateBucket:
    """Sum for one (rollup_key, year) plus the rows that contributed to it."""

    details: List[DetailEntry] = field(default_factory=list)

    @property
    def total(self) -> float:
        return math.fsum(value for _, value in self.details)


AggregatedSeries = Dict[str, Dict[str, AggregateBucket]]


def aggregate(rows: Iterable[ParsedRow]) -> AggregatedSeries:
    """
    Roll up parsed rows that share a rollup key.

    Args:
        rows: Parsed rows of one metric table

    Returns:
        Mapping rollup_key -> year -> AggregateBucket. Rows with an empty rollup
        key are dropped; None values are "no data" and never contribute.
    """
    series: AggregatedSeries = {}
    for row in rows:
        if not row.rollup_key:
            continue
        for year, value in row.values_by_year.items():
            if value is None:
                continue
            bucket = series.setdefault(row.rollup_key, {}).setdefault(year, AggregateBucket())
            bucket.details.append((row.key, value))
    return series


def series_value(series: Optional[AggregatedSeries], key: str, year: str) -> Optional[float]:
    """Total for (key, year), or None when the series has no data there."""
    if not series:
        return None
    bucket = series.get(key, {}).get(year)
    return bucket.total if bucket is not None else None


def series_years(series: AggregatedSeries) -> List[str]:
    years = []
    for by_year in series.values():
        years.extend(by_year.keys())
    return sort_years(years)


def published_totals(table: Any, axis: YearAxis, years: Sequence[str] = ()) -> Dict[str, float]:
    """
    Read the grand-total row (``table.total.values``) against a table's year axis.

    A total row spanning every column is read at the axis column indices, like
    the table's data rows; a shorter one aligns its last values with the axis
    years (or ``years`` when the axis is empty). Suppressed or non-numeric
    totals are left out.
    """
    if not isinstance(table, Mapping):
        return {}
    total = table.get("total")
    if not isinstance(total, Mapping):
        return {}
    entries = decode_entries(total.get("values"))
    if not entries:
        return {}
    values = map_total_values(entries, table, axis, years)
    return {year: value for year, value in values.items() if value is not None}
