# WORKFLOW: Fallback chain for row extraction from one metric table.
# Used by: Trade stats engine (normalize, breakout, stacked, compare)
# Functions:
# 1. first_non_empty() - Generic "first usable stage wins" combinator
# 2. stage_index_exact() - (a) map years via resolved column indices
# 3. stage_positional() - (b) map the trailing data window positionally
# 4. stage_total_row() - (c) rebuild a single TOTAL/context row from the aggregate row
# 5. stage_column_info() - (d) rebuild rows from row_groups[].columnInfo metadata
# 6. extract_rows() - Run the four stages in order for one table
#
# Chain flow: StageInput -> (a) -> (b) -> (c) -> (d) -> first result carrying data.
# A stage that raises is logged and treated as "no data"; the chain never raises.

"""
Fallback chain for trade statistics row extraction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from etl.entries import DecodedEntry, decode_entries, looks_numeric
from etl.row_parser import (
    MAPPING_INDEX,
    MAPPING_POSITIONAL,
    TOTAL_KEY,
    ParsedRow,
    map_total_values,
    map_trailing_window,
    normalize_known_keys,
    parse_row,
    parse_table,
    rollup_key_for,
    table_rows,
)
from etl.year_axis import YearAxis, axis_from_column_info

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

STAGE_INDEX_EXACT = "index_exact"
STAGE_POSITIONAL = "positional"
STAGE_TOTAL_ROW = "total_row"
STAGE_COLUMN_INFO = "column_info"
STAGE_NONE = "none"


@dataclass(frozen=True)
class StageInput:
    """Everything a stage needs to extract rows from one table."""

    table: Any
    axis: YearAxis
    years: Tuple[str, ...]
    known_keys: Tuple[str, ...]
    context: str


def first_non_empty(
    stages: Sequence[Tuple[str, Callable[[T], Optional[R]]]],
    value: T,
    usable: Callable[[R], bool] = bool,
) -> Tuple[Optional[str], Optional[R]]:
    """
    Run stages in order and return (name, result) of the first usable result.

    Args:
        stages: Ordered (name, stage) pairs
        value: Input handed to every stage
        usable: Predicate deciding whether a result ends the chain

    Returns:
        (stage_name, result), or (None, None) when no stage produced a usable result
    """
    for name, stage in stages:
        try:
            result = stage(value)
        except Exception as e:
            logger.warning(f"Extraction stage {name} failed: {e}")
            continue
        if result is not None and usable(result):
            return name, result
    return None, None


def stage_index_exact(inp: StageInput) -> Optional[List[ParsedRow]]:
    if not inp.axis.has_indices:
        return None
    return parse_table(
        inp.table, inp.axis, inp.known_keys,
        context=inp.context, years=inp.years, mapping=MAPPING_INDEX,
    )


def stage_positional(inp: StageInput) -> Optional[List[ParsedRow]]:
    years = inp.axis.years or inp.years
    if not years:
        return None
    axis = YearAxis(years=tuple(years), source=inp.axis.source)
    return parse_table(
        inp.table, axis, inp.known_keys,
        context=inp.context, years=inp.years, mapping=MAPPING_POSITIONAL,
    )


def _aggregate_row_entries(table: Any) -> Tuple[List[DecodedEntry], bool]:
    """Entries of the table's aggregate row and whether they came from ``table.total``."""
    total = table.get("total") if isinstance(table, Mapping) else None
    if isinstance(total, Mapping) and isinstance(total.get("values"), list):
        return decode_entries(total["values"]), True
    rows = table_rows(table)
    if not rows or not isinstance(rows[0], Mapping):
        return [], False
    first = rows[0]
    raw = first.get("rowEntries") if isinstance(first.get("rowEntries"), list) else first.get("entries")
    entries = decode_entries(raw)
    # The first cell of a single-context row is its label
    if entries and not looks_numeric(entries[0].text):
        return entries[1:], False
    return entries, False


def stage_total_row(inp: StageInput) -> Optional[List[ParsedRow]]:
    years = list(inp.axis.years or inp.years)
    if not years:
        return None
    entries, from_total = _aggregate_row_entries(inp.table)
    if not entries:
        return None
    known = normalize_known_keys(inp.known_keys, inp.context)
    key = known[0] if known else TOTAL_KEY
    if from_total:
        values = map_total_values(entries, inp.table, inp.axis, inp.years)
    else:
        values = map_trailing_window(entries, years)
    for year in inp.years:
        values.setdefault(year, None)
    return [ParsedRow(key=key, rollup_key=rollup_key_for(key, inp.context), values_by_year=values)]


def stage_column_info(inp: StageInput) -> Optional[List[ParsedRow]]:
    if not isinstance(inp.table, Mapping):
        return None
    row_groups = inp.table.get("row_groups")
    if not isinstance(row_groups, list):
        return None
    default_year = inp.years[-1] if inp.years else None
    parsed: List[ParsedRow] = []
    for group in row_groups:
        axis = axis_from_column_info(group, default_year=default_year)
        if axis.is_empty:
            continue
        mapping = MAPPING_INDEX if axis.has_indices else MAPPING_POSITIONAL
        years = tuple(sorted(set(inp.years) | set(axis.years), key=int))
        for row in table_rows({"row_groups": [group]}):
            result = parse_row(row, axis, inp.known_keys, context=inp.context, years=years, mapping=mapping)
            if result is not None:
                parsed.append(result)
    return parsed


ROW_STAGES: Tuple[Tuple[str, Callable[[StageInput], Optional[List[ParsedRow]]]], ...] = (
    (STAGE_INDEX_EXACT, stage_index_exact),
    (STAGE_POSITIONAL, stage_positional),
    (STAGE_TOTAL_ROW, stage_total_row),
    (STAGE_COLUMN_INFO, stage_column_info),
)


def rows_have_data(rows: List[ParsedRow]) -> bool:
    return any(row.has_data for row in rows)


def extract_rows(inp: StageInput, stages=ROW_STAGES) -> Tuple[str, List[ParsedRow]]:
    """
    Extract parsed rows from one table through the fallback chain.

    The first stage whose rows carry at least one value wins. When no stage
    finds values, the first stage that found rows at all is kept so that
    "rows present but empty" survives; otherwise the result is empty.
    """
    name, rows = first_non_empty(stages, inp, usable=rows_have_data)
    if name is not None:
        return name, rows
    name, rows = first_non_empty(stages, inp, usable=bool)
    if name is not None:
        logger.info(f"Table rows found by {name} carry no values")
        return name, rows
    return STAGE_NONE, []
