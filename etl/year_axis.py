# WORKFLOW: Year axis resolution for trade statistics report tables.
# Used by: Row parser, fallback chain, trade stats engine (year union)
# Functions:
# 1. flatten_columns() - Flatten column_groups into one ordered column label list
# 2. resolve_year_axis() - Ordered year labels (and their column indices) for a table
# 3. axis_from_column_info() - Secondary heuristic over row_groups[].columnInfo
# 4. union_years() - Sorted union of year labels across several tables
#
# Resolution order: fully homogeneous year group -> last group with any year column
# -> columnInfo "data" entries -> empty axis. An empty axis means "cannot resolve
# this table" and is never an error.

"""
Year axis resolution for trade statistics report tables.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from etl.entries import sort_years, year_label

logger = logging.getLogger(__name__)

SOURCE_COLUMN_GROUP = "column_group"
SOURCE_ANY_GROUP = "any_group"
SOURCE_COLUMN_INFO = "column_info"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class YearAxis:
    """Ordered years of a table and, when known, the entry index of each year."""

    years: Tuple[str, ...] = ()
    column_indices: Tuple[int, ...] = ()
    source: str = SOURCE_NONE

    @property
    def is_empty(self) -> bool:
        return not self.years

    @property
    def has_indices(self) -> bool:
        return bool(self.column_indices) and len(self.column_indices) == len(self.years)


EMPTY_AXIS = YearAxis()


@dataclass
class _Group:
    labels: List[str] = field(default_factory=list)
    offset: int = 0


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _column_label(column: Any) -> str:
    if isinstance(column, Mapping):
        label = column.get("label")
        return "" if label is None else str(label)
    return ""


def _groups(table: Any) -> List[_Group]:
    if not isinstance(table, Mapping):
        return []
    groups = []
    offset = 0
    for group in _as_list(table.get("column_groups")):
        columns = _as_list(group.get("columns")) if isinstance(group, Mapping) else []
        labels = [_column_label(column) for column in columns]
        groups.append(_Group(labels=labels, offset=offset))
        offset += len(labels)
    return groups


def flatten_columns(table: Any) -> List[str]:
    """Flatten ``column_groups`` into a single ordered list of column labels."""
    labels: List[str] = []
    for group in _groups(table):
        labels.extend(group.labels)
    return labels


def _longest_year_run(labels: List[str]) -> Tuple[int, int]:
    """Return (start, length) of the longest contiguous run of year labels."""
    best_start, best_len = 0, 0
    run_start, run_len = 0, 0
    for idx, label in enumerate(labels):
        if year_label(label):
            if run_len == 0:
                run_start = idx
            run_len += 1
            if run_len > best_len:
                best_start, best_len = run_start, run_len
        else:
            run_len = 0
    return best_start, best_len


def _axis_from_run(group: _Group, start: int, length: int, source: str) -> YearAxis:
    years: List[str] = []
    indices: List[int] = []
    for i in range(start, start + length):
        year = year_label(group.labels[i])
        # A repeated year inside one run would map two cells to one key; keep the first
        if year in years:
            continue
        years.append(year)
        indices.append(group.offset + i)
    return YearAxis(years=tuple(years), column_indices=tuple(indices), source=source)


def _column_info_year(info: Mapping) -> Optional[str]:
    return year_label(info.get("columnLabel")) or year_label(info.get("queryResultLabel"))


def axis_from_column_info(row_group: Any, default_year: Optional[str] = None) -> YearAxis:
    """
    Build an axis from one row group's ``columnInfo`` entries of type "data".

    ``columnIndex`` is 1-based in the source; indices are only kept when every
    data entry carries one.
    """
    if not isinstance(row_group, Mapping):
        return EMPTY_AXIS
    pairs = []
    all_indexed = True
    for info in _as_list(row_group.get("columnInfo")):
        if not isinstance(info, Mapping):
            continue
        if str(info.get("type") or "").lower() != "data":
            continue
        year = _column_info_year(info) or default_year
        if not year:
            continue
        index = info.get("columnIndex")
        if isinstance(index, bool) or not isinstance(index, int) or index < 1:
            all_indexed = False
            index = None
        else:
            index -= 1
        pairs.append((year, index))

    seen = {}
    for year, index in pairs:
        seen.setdefault(year, index)
    years = sort_years(seen.keys())
    indices: Tuple[int, ...] = ()
    if all_indexed and years:
        indices = tuple(seen[year] for year in years)
    return YearAxis(years=tuple(years), column_indices=indices, source=SOURCE_COLUMN_INFO)


def resolve_year_axis(table: Any) -> YearAxis:
    """
    Determine the ordered year labels that index a table's data columns.

    Args:
        table: Raw table mapping from the report payload

    Returns:
        YearAxis; empty when no year structure can be found
    """
    groups = _groups(table)

    # Prefer a group where every column is a year, taking the longest one
    homogeneous = [
        g for g in groups
        if g.labels and all(year_label(label) for label in g.labels)
    ]
    if homogeneous:
        # max() keeps the first of equally long groups
        best = max(homogeneous, key=lambda g: len(g.labels))
        return _axis_from_run(best, 0, len(best.labels), SOURCE_COLUMN_GROUP)

    for group in reversed(groups):
        start, length = _longest_year_run(group.labels)
        if length:
            return _axis_from_run(group, start, length, SOURCE_ANY_GROUP)

    if isinstance(table, Mapping):
        row_groups = _as_list(table.get("row_groups"))
        if row_groups:
            axis = axis_from_column_info(row_groups[0])
            if not axis.is_empty:
                return axis

    logger.debug("No year structure found for table")
    return EMPTY_AXIS


def union_years(axes: Iterable[YearAxis]) -> List[str]:
    """Sorted (ascending, as integers) union of the years of all given axes."""
    years: List[str] = []
    for axis in axes:
        years.extend(axis.years)
    return sort_years(years)
