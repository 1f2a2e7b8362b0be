# WORKFLOW: Merge per-metric aggregated series into denormalized records.
# Used by: Trade stats engine (non-breakout path), composite landed breakout
# Functions:
# 1. LandedFormula - Configurable summands for the derived Landed Duty-Paid Value
# 2. merge_metrics() - One MergedRecord per (rollup_key, year) over the full year axis
# 3. build_reconciliation() - Detail contributions vs final value for one metric
# 4. build_series_meta() - Chart series descriptors for non-empty rollup/metric pairs
#
# Merge flow: {metric: AggregatedSeries} + year axis -> records -> landed derivation
# -> landed_check diagnostics -> period warning for missing quantity tables.
# Published values are never overwritten by derived ones.

"""
Metric merging and reconciliation for trade statistics.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from api.schemas.response import (
    DetailValue,
    LandedSource,
    MergedRecord,
    ReconciliationEntry,
    SeriesMeta,
)
from core.config import settings
from etl.entries import finite_or_none
from etl.table_locator import METRIC_LABELS, METRICS
from services.aggregator import AggregateBucket, AggregatedSeries, series_value

logger = logging.getLogger(__name__)

PERIOD_WARNING_QUANTITY = "Quantity table unavailable for this period; quantity-dependent metrics omitted"


@dataclass(frozen=True)
class LandedFormula:
    """
    Summands of the derived landed value.

    ``required`` must all be present for a derivation; ``optional`` are added
    when available.
    """

    required: Tuple[str, ...] = ("cif", "calc_duties")
    optional: Tuple[str, ...] = ()

    @classmethod
    def from_flag(cls, include_charges: bool) -> "LandedFormula":
        return cls(optional=("charges",) if include_charges else ())

    @classmethod
    def from_settings(cls) -> "LandedFormula":
        return cls.from_flag(settings.landed_include_charges)

    def derive(self, values: Mapping[str, Optional[float]]) -> Optional[float]:
        parts = []
        for name in self.required:
            value = values.get(name)
            if value is None:
                return None
            parts.append(value)
        parts.extend(values[name] for name in self.optional if values.get(name) is not None)
        return math.fsum(parts)


def _rollup_keys(series_by_metric: Mapping[str, AggregatedSeries], key_order: Optional[Sequence[str]]) -> List[str]:
    observed = set()
    for series in series_by_metric.values():
        observed.update(series.keys())
    ordered = [key for key in (key_order or []) if key in observed]
    ordered.extend(sorted(observed.difference(ordered)))
    return ordered


def merge_metrics(
    series_by_metric: Mapping[str, AggregatedSeries],
    years: Sequence[str],
    formula: Optional[LandedFormula] = None,
    tolerance: Optional[float] = None,
    key_order: Optional[Sequence[str]] = None,
) -> List[MergedRecord]:
    """
    Combine per-metric series into one record per (rollup_key, year).

    Args:
        series_by_metric: Aggregated series per metric; an absent metric means its table was absent
        years: Full working year axis
        formula: Landed derivation formula (defaults from settings)
        tolerance: |landed_check| above this flags a mismatch
        key_order: Preferred rollup key order; remaining keys follow sorted

    Returns:
        List of MergedRecord ordered by rollup key, then year
    """
    formula = formula or LandedFormula.from_settings()
    tolerance = settings.reconciliation_tolerance if tolerance is None else tolerance

    # Quantity commonly goes unpublished while YTD-only tables are out
    period_warning = None
    if series_by_metric and "quantity" not in series_by_metric:
        period_warning = PERIOD_WARNING_QUANTITY
        logger.warning("Quantity table absent while other metrics present; attaching period warning")

    records: List[MergedRecord] = []
    for key in _rollup_keys(series_by_metric, key_order):
        for year in years:
            values: Dict[str, Optional[float]] = {
                metric: finite_or_none(series_value(series_by_metric.get(metric), key, year))
                for metric in METRICS
            }

            published_landed = values["landed"]
            derived_landed = finite_or_none(formula.derive(values))
            landed_check = None
            landed_source = None
            if published_landed is not None:
                landed_source = LandedSource.PUBLISHED
                if derived_landed is not None:
                    landed_check = finite_or_none(published_landed - derived_landed)
            elif derived_landed is not None:
                values["landed"] = derived_landed
                landed_source = LandedSource.DERIVED

            quantity = None if period_warning else values["quantity"]
            unit_value = None
            if quantity and values["value"] is not None:
                unit_value = finite_or_none(values["value"] / quantity)

            records.append(MergedRecord(
                rollup_key=key,
                year=year,
                quantity=quantity,
                value=values["value"],
                cif=values["cif"],
                charges=values["charges"],
                calc_duties=values["calc_duties"],
                dutiable=values["dutiable"],
                landed=values["landed"],
                landed_check=landed_check,
                landed_source=landed_source,
                landed_mismatch=landed_check is not None and abs(landed_check) > tolerance,
                unit_value=unit_value,
                period_warning=period_warning,
            ))
    return records


def derive_landed_series(
    series_by_metric: Mapping[str, AggregatedSeries],
    formula: Optional[LandedFormula] = None,
) -> AggregatedSeries:
    """
    Landed series built from its summand series, key by key and year by year.

    Each bucket's details name the summand metric that contributed.
    """
    formula = formula or LandedFormula.from_settings()
    summands = formula.required + formula.optional
    keys: List[str] = []
    for metric in summands:
        for key in series_by_metric.get(metric, {}):
            if key not in keys:
                keys.append(key)

    derived: AggregatedSeries = {}
    for key in keys:
        years = set()
        for metric in summands:
            years.update(series_by_metric.get(metric, {}).get(key, {}).keys())
        for year in sorted(years, key=int):
            values = {m: series_value(series_by_metric.get(m), key, year) for m in summands}
            if formula.derive(values) is None:
                continue
            bucket = derived.setdefault(key, {}).setdefault(year, AggregateBucket())
            bucket.details.extend((m, values[m]) for m in summands if values[m] is not None)
    return derived


def build_reconciliation(
    series: Optional[AggregatedSeries],
    records: Sequence[MergedRecord],
    metric: str,
    tolerance: Optional[float] = None,
) -> List[ReconciliationEntry]:
    """
    Compare each bucket's detail sum with the final merged value of ``metric``.

    Mismatches are reported, never corrected.
    """
    if not series or metric not in METRICS:
        return []
    tolerance = settings.reconciliation_tolerance if tolerance is None else tolerance
    final_by_bucket = {(r.rollup_key, r.year): getattr(r, metric) for r in records}

    entries: List[ReconciliationEntry] = []
    for record in records:
        bucket = series.get(record.rollup_key, {}).get(record.year)
        if bucket is None:
            continue
        total = bucket.total
        final = final_by_bucket.get((record.rollup_key, record.year))
        diff = finite_or_none(final - total) if final is not None else None
        entries.append(ReconciliationEntry(
            rollup_key=record.rollup_key,
            year=record.year,
            metric=metric,
            total=total,
            details=[DetailValue(key=k, value=v) for k, v in bucket.details],
            final=final,
            diff=diff,
            mismatch=diff is not None and abs(diff) > tolerance,
        ))
    return entries


def build_series_meta(records: Sequence[MergedRecord]) -> List[SeriesMeta]:
    """Series descriptors for every rollup key / metric carrying at least one value."""
    keys: List[str] = []
    present = set()
    for record in records:
        if record.rollup_key not in keys:
            keys.append(record.rollup_key)
        for metric in METRICS:
            if getattr(record, metric) is not None:
                present.add((record.rollup_key, metric))

    series = []
    for key, metric in ((k, m) for k in keys for m in METRICS):
        if (key, metric) not in present:
            continue
        series.append(SeriesMeta(
            key=f"{key}-{metric}",
            rollup_key=key,
            metric=metric,
            label=f"{key} - {METRIC_LABELS[metric]}",
        ))
    return series
