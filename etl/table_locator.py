# WORKFLOW: Locate metric tables inside a trade statistics report payload.
# Used by: Trade stats engine, breakout ranking, fallback chain
# Functions:
# 1. payload_tables() - Read tables from payload.tables or payload.dto.tables
# 2. table_name() - Normalized table name (tabName / tab_name / name)
# 3. is_ytd_table() - Detect year-to-date tables by name or column labels
# 4. resolve_metric_key() - Map a table to a metric via the ordered rule table
# 5. locate_tables() - Pick one table per metric for the requested period mode
#
# Locate flow: payload -> period filter (annual | ytd) -> rule matching -> {metric: table}
# Rules are (predicate, metric) pairs evaluated in priority order; unmatched metrics
# are simply absent from the result.

"""
Metric table location for trade statistics report payloads.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

PERIOD_ANNUAL = "annual"
PERIOD_YTD = "ytd"

METRICS: Tuple[str, ...] = (
    "quantity", "value", "cif", "charges", "calc_duties", "dutiable", "landed",
)

METRIC_LABELS: Dict[str, str] = {
    "quantity": "Quantity",
    "value": "Customs Value / Balance",
    "cif": "CIF Value",
    "charges": "Import Charges",
    "calc_duties": "Calculated Duties",
    "dutiable": "Dutiable Value",
    "landed": "Landed Duty-Paid Value",
}

_ACTUAL_QUALIFIER = re.compile(r"\(in actual.*\)")


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda name: any(needle in name for needle in needles)


def _fas_genimp(name: str) -> bool:
    return "fas" in name and "genimp" in name


_CIF_WORD = re.compile(r"\bcif\b")


def _cif(name: str) -> bool:
    # "specific" must not read as CIF
    return bool(_CIF_WORD.search(name))


# Ordered (predicate, metric). The more specific names come first so that, for
# example, "Landed Duty-Paid Value (CIF + Duties)" is not read as CIF and a
# "Trade Balance" table never shadows "Customs Value".
METRIC_RULES: Tuple[Tuple[Callable[[str], bool], str], ...] = (
    (_contains("landed duty-paid value", "landed duty"), "landed"),
    (_contains("calculated duties"), "calc_duties"),
    (_contains("dutiable value"), "dutiable"),
    (_contains("import charges", "charges, insurance, and freight", "charges, insurance"), "charges"),
    (_cif, "cif"),
    (_contains("1st unit", "first unit", "unit of qty", "unit of quantity"), "quantity"),
    (_contains("customs value"), "value"),
    (_contains("trade balance", "tot ex fas", "fas - genimp"), "value"),
    (_fas_genimp, "value"),
)


def payload_tables(payload: Any) -> List[Any]:
    """Tables of a report payload; accepts ``{"tables": [...]}`` or ``{"dto": {"tables": [...]}}``."""
    if not isinstance(payload, Mapping):
        return []
    tables = payload.get("tables")
    if not isinstance(tables, list):
        dto = payload.get("dto")
        tables = dto.get("tables") if isinstance(dto, Mapping) else None
    if not isinstance(tables, list):
        return []
    return [t for t in tables if isinstance(t, Mapping)]


def table_name(table: Any) -> str:
    """Lower-cased table name with any "(in actual ...)" qualifier removed."""
    if not isinstance(table, Mapping):
        return ""
    info = table.get("tableInfo")
    raw = info.get("tabName") if isinstance(info, Mapping) else None
    raw = raw or table.get("tab_name") or table.get("name") or ""
    return _ACTUAL_QUALIFIER.sub("", str(raw).lower()).strip()


def _column_labels(table: Mapping) -> List[str]:
    labels = []
    groups = table.get("column_groups")
    for group in groups if isinstance(groups, list) else []:
        if not isinstance(group, Mapping):
            continue
        labels.append(str(group.get("label") or ""))
        columns = group.get("columns")
        for column in columns if isinstance(columns, list) else []:
            if isinstance(column, Mapping):
                labels.append(str(column.get("label") or ""))
    return labels


def is_ytd_table(table: Any) -> bool:
    if not isinstance(table, Mapping):
        return False
    name = table_name(table)
    if "year-to-date" in name or "ytd" in name:
        return True
    return any("year_to_date" in label.lower() for label in _column_labels(table))


def filter_by_period(tables: List[Any], period_mode: str) -> List[Any]:
    """Keep only tables of the requested period mode."""
    want_ytd = period_mode == PERIOD_YTD
    return [t for t in tables if is_ytd_table(t) == want_ytd]


def _rule_rank(name: str, rules) -> Tuple[Optional[int], Optional[str]]:
    for rank, (predicate, metric) in enumerate(rules):
        if predicate(name):
            return rank, metric
    return None, None


def resolve_metric_key(table: Any, rules=METRIC_RULES) -> Optional[str]:
    """Metric a table reports, or None when no rule matches its name."""
    return _rule_rank(table_name(table), rules)[1]


def relevant_tables(payload: Any, period_mode: str = PERIOD_ANNUAL) -> List[Any]:
    return filter_by_period(payload_tables(payload), period_mode)


def locate_tables(
    payload: Any,
    period_mode: str = PERIOD_ANNUAL,
    rules=METRIC_RULES,
) -> Dict[str, Any]:
    """
    Select one table per metric from a report payload.

    Args:
        payload: Deserialized report payload
        period_mode: "annual" or "ytd"
        rules: Ordered (predicate, metric) rule table

    Returns:
        Mapping metric -> table. For each metric the table matched by the
        highest-priority rule wins; ties keep payload order.
    """
    best: Dict[str, Tuple[int, Any]] = {}
    for table in relevant_tables(payload, period_mode):
        rank, metric = _rule_rank(table_name(table), rules)
        if metric is None:
            continue
        if metric not in best or rank < best[metric][0]:
            best[metric] = (rank, table)

    located = {metric: best[metric][1] for metric in METRICS if metric in best}
    missing = [metric for metric in METRICS if metric not in located]
    logger.info(f"Located {len(located)} metric tables for {period_mode}: {sorted(located)}")
    if missing:
        logger.debug(f"No table for metrics: {missing}")
    return located
