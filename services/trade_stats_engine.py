# WORKFLOW: Trade statistics engine that normalizes report payloads into records and rankings.
# Used by: Trade report endpoints, integration testing
# Functions:
# 1. normalize() - Payload -> MergedRecord[] with reconciliation and series metadata
# 2. breakout() - Payload -> per-country Top-N plus Others for one ranking year
# 3. stacked() - Payload -> per-year Top-K plus Others
# 4. compare() - Payload -> per-country Year-A/Year-B differences across metrics
# 5. _extract_metric() - Locate table -> resolve axis -> fallback chain -> parsed rows
#
# Engine flow: payload -> TableLocator -> YearAxisResolver -> FallbackChain(RowParser)
# -> Aggregator (fan-out per metric) -> MetricMerger / BreakoutRanker (fan-in)
# The engine holds no state between calls and never mutates the caller's payload.

"""
Trade statistics normalization and breakout engine.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from api.schemas.response import (
    BreakoutResult,
    Metric,
    NormalizedReport,
    PeriodMode,
    StackedBreakdownRow,
    YearComparison,
)
from etl.entries import sort_years
from etl.row_parser import (
    CONTEXT_COMMODITY,
    CONTEXT_COUNTRY,
    ParsedRow,
    normalize_known_keys,
)
from etl.table_locator import METRICS, locate_tables, table_name
from etl.validators import generate_validation_report, validate_known_keys, validate_payload
from etl.year_axis import EMPTY_AXIS, YearAxis, resolve_year_axis, union_years
from services.aggregator import AggregatedSeries, aggregate, published_totals
from services.breakout import AUTO_YEAR, compare_years, rank_breakout, stacked_breakdown
from services.fallback import STAGE_NONE, StageInput, extract_rows
from services.metric_merger import (
    LandedFormula,
    build_reconciliation,
    build_series_meta,
    derive_landed_series,
    merge_metrics,
)

logger = logging.getLogger(__name__)

CONTEXTS = (CONTEXT_COMMODITY, CONTEXT_COUNTRY)


@dataclass
class MetricExtraction:
    """Rows extracted from the table located for one metric."""

    metric: str
    table: Any
    axis: YearAxis = EMPTY_AXIS
    stage: str = STAGE_NONE
    rows: List[ParsedRow] = field(default_factory=list)

    @property
    def row_years(self) -> List[str]:
        years = []
        for row in self.rows:
            years.extend(row.values_by_year.keys())
        return years


@dataclass
class CountrySeries:
    """One metric's per-country series with its published totals."""

    series: AggregatedSeries = field(default_factory=dict)
    published: Dict[str, float] = field(default_factory=dict)
    years: List[str] = field(default_factory=list)
    key_order: List[str] = field(default_factory=list)


def _period(period_mode: Any) -> str:
    return PeriodMode(period_mode).value


def _metric(metric: Any) -> str:
    return Metric(metric).value


def _context(context: str) -> str:
    if context not in CONTEXTS:
        raise ValueError(f"Unknown key context: {context}")
    return context


def _log_diagnostics(payload: Any, known_keys: Sequence[str] = (), context: str = CONTEXT_COMMODITY) -> None:
    report = generate_validation_report(validate_payload(payload))
    if not report["overall_valid"]:
        logger.warning(f"Payload structure issues: {report['summary']}")
    keys_valid, key_errors = validate_known_keys(known_keys, context)
    if not keys_valid:
        logger.warning(f"Known key issues for {context} context: {key_errors}")


def _appearance_order(extractions: Sequence[MetricExtraction], seed: Sequence[str] = ()) -> List[str]:
    order = list(seed)
    for extraction in extractions:
        for row in extraction.rows:
            if row.rollup_key and row.rollup_key not in order:
                order.append(row.rollup_key)
    return order


class TradeStatsEngine:
    """Normalizes trade statistics report payloads; stateless across calls."""

    def __init__(
        self,
        landed_formula: Optional[LandedFormula] = None,
        reconciliation_tolerance: Optional[float] = None,
    ):
        self.landed_formula = landed_formula or LandedFormula.from_settings()
        self.reconciliation_tolerance = reconciliation_tolerance

    def _extract_metric(
        self,
        metric: str,
        table: Any,
        known_keys: Sequence[str],
        context: str,
        years: Sequence[str] = (),
    ) -> MetricExtraction:
        axis = resolve_year_axis(table)
        if axis.is_empty:
            logger.warning(f"No year axis resolved for {metric} table '{table_name(table)}'")
        working = tuple(sort_years(list(years) + list(axis.years)))
        stage, rows = extract_rows(StageInput(
            table=table,
            axis=axis,
            years=working,
            known_keys=tuple(known_keys or ()),
            context=context,
        ))
        logger.info(f"Extracted {len(rows)} rows for {metric} via {stage}")
        return MetricExtraction(metric=metric, table=table, axis=axis, stage=stage, rows=rows)

    def _extract_all(
        self,
        payload: Any,
        period_mode: str,
        known_keys: Sequence[str],
        context: str,
        metrics: Sequence[str] = METRICS,
    ) -> Tuple[Dict[str, MetricExtraction], List[str]]:
        located = locate_tables(payload, period_mode)
        wanted = [m for m in metrics if m in located]
        axes = {m: resolve_year_axis(located[m]) for m in wanted}
        years = union_years(axes.values())

        # Fan-out per metric; every series is complete before anything merges
        extractions = {
            m: self._extract_metric(m, located[m], known_keys, context, years)
            for m in wanted
        }
        all_years: List[str] = list(years)
        for extraction in extractions.values():
            all_years.extend(extraction.row_years)
        return extractions, sort_years(all_years)

    def normalize(
        self,
        payload: Any,
        period_mode: str = PeriodMode.ANNUAL.value,
        known_keys: Sequence[str] = (),
        metric: str = Metric.CIF.value,
        context: str = CONTEXT_COMMODITY,
    ) -> NormalizedReport:
        """
        Normalize a report payload into one record per (rollup_key, year).

        Args:
            payload: Deserialized report payload (never mutated)
            period_mode: "annual" or "ytd"
            known_keys: Commodity codes (or country names) relevant to the query
            metric: Metric whose detail reconciliation is reported
            context: "commodity" or "country" row keys

        Returns:
            NormalizedReport; empty when nothing in the payload is recognised
        """
        period_mode, metric, context = _period(period_mode), _metric(metric), _context(context)
        _log_diagnostics(payload, known_keys, context)
        extractions, years = self._extract_all(payload, period_mode, known_keys, context)
        if not extractions:
            logger.warning(f"No metric tables located for {period_mode}; returning empty report")
            return NormalizedReport()

        series_by_metric = {m: aggregate(e.rows) for m, e in extractions.items()}
        key_order = _appearance_order(
            list(extractions.values()), normalize_known_keys(known_keys, context)
        )
        records = merge_metrics(
            series_by_metric,
            years,
            formula=self.landed_formula,
            tolerance=self.reconciliation_tolerance,
            key_order=key_order,
        )

        reconciled = series_by_metric.get(metric)
        if metric == Metric.LANDED.value and not reconciled:
            reconciled = derive_landed_series(series_by_metric, self.landed_formula)

        report = NormalizedReport(
            years=years,
            records=records,
            series=build_series_meta(records),
            reconciliation=build_reconciliation(
                reconciled, records, metric, self.reconciliation_tolerance
            ),
            tables={m: table_name(e.table) for m, e in extractions.items()},
            strategies={m: e.stage for m, e in extractions.items()},
        )
        logger.info(
            f"Normalized {len(records)} records over {len(years)} years "
            f"from {len(extractions)} metric tables"
        )
        return report

    def _country_series(
        self,
        payload: Any,
        metric: str,
        period_mode: str,
        known_keys: Sequence[str],
    ) -> CountrySeries:
        metric = _metric(metric)
        if metric == Metric.LANDED.value:
            located = locate_tables(payload, period_mode)
            if Metric.LANDED.value not in located:
                return self._composite_landed(payload, period_mode, known_keys)

        extractions, years = self._extract_all(
            payload, period_mode, known_keys, CONTEXT_COUNTRY, metrics=(metric,)
        )
        extraction = extractions.get(metric)
        if extraction is None:
            logger.warning(f"No {metric} table located for breakout")
            return CountrySeries()
        return CountrySeries(
            series=aggregate(extraction.rows),
            published=published_totals(extraction.table, extraction.axis, years),
            years=years,
            key_order=_appearance_order([extraction]),
        )

    def _composite_landed(self, payload: Any, period_mode: str, known_keys: Sequence[str]) -> CountrySeries:
        summands = self.landed_formula.required + self.landed_formula.optional
        extractions, years = self._extract_all(
            payload, period_mode, known_keys, CONTEXT_COUNTRY, metrics=summands
        )
        if any(m not in extractions for m in self.landed_formula.required):
            logger.warning("Composite landed breakout unavailable; summand tables missing")
            return CountrySeries(years=years)

        logger.info(f"Deriving landed breakout from {sorted(extractions)}")
        series_by_metric = {m: aggregate(e.rows) for m, e in extractions.items()}
        totals_by_metric = {
            m: published_totals(e.table, e.axis, years)
            for m, e in extractions.items()
        }
        published = {}
        for year in years:
            derived = self.landed_formula.derive({m: t.get(year) for m, t in totals_by_metric.items()})
            if derived is not None:
                published[year] = derived
        return CountrySeries(
            series=derive_landed_series(series_by_metric, self.landed_formula),
            published=published,
            years=years,
            key_order=_appearance_order(list(extractions.values())),
        )

    def breakout(
        self,
        payload: Any,
        metric: str = Metric.CIF.value,
        period_mode: str = PeriodMode.ANNUAL.value,
        year: Optional[str] = AUTO_YEAR,
        top_n: Optional[int] = None,
        known_keys: Sequence[str] = (),
    ) -> BreakoutResult:
        """
        Rank countries by one metric for the resolved year.

        A ``landed`` breakout without a landed table is derived from the
        per-country summand tables.
        """
        period_mode = _period(period_mode)
        _log_diagnostics(payload, known_keys, CONTEXT_COUNTRY)
        country = self._country_series(payload, metric, period_mode, known_keys)
        if not country.series:
            return BreakoutResult()
        result = rank_breakout(
            country.series,
            year=year or AUTO_YEAR,
            top_n=top_n,
            published=country.published,
            years=country.years,
            key_order=country.key_order,
        )
        logger.info(
            f"Breakout {metric} ranked {len(result.entries)} countries for {result.ranking_year}"
        )
        return result

    def stacked(
        self,
        payload: Any,
        metric: str = Metric.CIF.value,
        period_mode: str = PeriodMode.ANNUAL.value,
        top_k: Optional[int] = None,
        selected: Optional[Sequence[str]] = None,
        known_keys: Sequence[str] = (),
    ) -> List[StackedBreakdownRow]:
        period_mode = _period(period_mode)
        _log_diagnostics(payload, known_keys, CONTEXT_COUNTRY)
        country = self._country_series(payload, metric, period_mode, known_keys)
        if not country.series:
            return []
        return stacked_breakdown(
            country.series,
            years=country.years,
            top_k=top_k,
            selected=selected,
            published=country.published,
            key_order=country.key_order,
        )

    def compare(
        self,
        payload: Any,
        metrics: Sequence[str] = (Metric.QUANTITY.value, Metric.CIF.value),
        period_mode: str = PeriodMode.ANNUAL.value,
        year_a: Optional[str] = None,
        year_b: Optional[str] = None,
        mode: str = "abs",
        sort: str = "desc",
        sort_metric: Optional[str] = None,
        top_n: Optional[int] = None,
        known_keys: Sequence[str] = (),
    ) -> YearComparison:
        """Per-country differences between two years for each requested metric."""
        period_mode = _period(period_mode)
        _log_diagnostics(payload, known_keys, CONTEXT_COUNTRY)
        series_by_metric: Dict[str, AggregatedSeries] = {}
        key_order: List[str] = []
        for metric in metrics:
            country = self._country_series(payload, metric, period_mode, known_keys)
            if not country.series:
                continue
            series_by_metric[_metric(metric)] = country.series
            key_order.extend(k for k in country.key_order if k not in key_order)
        return compare_years(
            series_by_metric,
            year_a=year_a,
            year_b=year_b,
            mode=mode,
            sort=sort,
            sort_metric=sort_metric,
            top_n=top_n,
            key_order=key_order,
        )


# Factory function
def create_trade_stats_engine(
    landed_formula: Optional[LandedFormula] = None,
    reconciliation_tolerance: Optional[float] = None,
) -> TradeStatsEngine:
    """Create trade stats engine instance."""
    return TradeStatsEngine(landed_formula, reconciliation_tolerance)
