# WORKFLOW: Row parsing for trade statistics report tables.
# Used by: Fallback chain stages, trade stats engine, breakout ranking
# Functions:
# 1. clean_hts_to_six() - Normalize an HTS code to its 6-digit rollup prefix
# 2. table_rows() - Flatten row_groups (rowsNew preferred over rows)
# 3. locate_key() - Find the descriptor key via ordered locator strategies
# 4. parse_row() - Extract key, description, unit and a year -> value map
# 5. parse_table() - Parse every row of a table against a resolved year axis
# 6. map_total_values() - Year map for a table's aggregate (total) row
#
# Parsing flow: raw row -> decoded entries -> key/description/unit -> year mapping
# (index-exact or trailing positional window) -> ParsedRow
# A row without numeric data still yields a ParsedRow with all-None values.

"""
Row parsing for trade statistics report tables.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from etl.entries import (
    NULL_LITERALS,
    DecodedEntry,
    cell_number,
    decode_entries,
    looks_numeric,
    parse_number,
    year_label,
)
from etl.year_axis import YearAxis, flatten_columns

logger = logging.getLogger(__name__)

TOTAL_KEY = "TOTAL"
CONTEXT_COMMODITY = "commodity"
CONTEXT_COUNTRY = "country"

MAPPING_AUTO = "auto"
MAPPING_INDEX = "index"
MAPPING_POSITIONAL = "positional"

HTS10_PATTERN = re.compile(r"^\d{10}$")
UNIT_WORDS = re.compile(r"\b(kilograms?|dollars?|number|liters?|dozens?|square meters?|tons?|pairs?)\b", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedRow:
    """One table row normalized to a key and a year -> value map."""

    key: str
    rollup_key: str
    description: str = ""
    unit: str = ""
    values_by_year: Dict[str, Optional[float]] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return any(v is not None for v in self.values_by_year.values())


def clean_hts_to_six(code: Any) -> str:
    """Strip non-digits from an HTS code and keep the first 6 digits."""
    digits = re.sub(r"\D", "", "" if code is None else str(code))
    return digits[:6]


def normalize_known_keys(known_keys: Sequence[str], context: str) -> List[str]:
    """Normalize caller-supplied keys (HTS6 for commodities, stripped names for countries)."""
    normalized: List[str] = []
    for key in known_keys or []:
        if key is None:
            continue
        value = clean_hts_to_six(key) if context == CONTEXT_COMMODITY else str(key).strip()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def rollup_key_for(key: str, context: str) -> str:
    """HTS6 prefix for commodity keys, identity for country keys; TOTAL stays TOTAL."""
    if not key:
        return ""
    if key == TOTAL_KEY:
        return TOTAL_KEY
    if context == CONTEXT_COMMODITY:
        return clean_hts_to_six(key)
    return key.strip()


def table_rows(table: Any) -> List[Any]:
    """Flatten a table's row groups; ``rowsNew`` takes precedence over ``rows``."""
    if not isinstance(table, Mapping):
        return []
    row_groups = table.get("row_groups")
    if not isinstance(row_groups, list):
        rows = table.get("rows")
        return list(rows) if isinstance(rows, list) else []
    rows: List[Any] = []
    for group in row_groups:
        if not isinstance(group, Mapping):
            continue
        group_rows = group.get("rowsNew")
        if not isinstance(group_rows, list):
            group_rows = group.get("rows")
        if isinstance(group_rows, list):
            rows.extend(group_rows)
    return rows


def row_entries(row: Any) -> Optional[List[DecodedEntry]]:
    """Decoded entries of a row, or None when the row has no entry list at all."""
    if not isinstance(row, Mapping):
        return None
    raw = row.get("rowEntries")
    if not isinstance(raw, list):
        raw = row.get("entries")
    if not isinstance(raw, list):
        return None
    return decode_entries(raw)


# --- Key locator strategies -------------------------------------------------
# Each locator returns the entry index of the row key, or None. They are tried
# in order; the first hit wins.

KeyLocator = Callable[[List[DecodedEntry], int, List[str], str], Optional[int]]


def _locate_known_key(entries: List[DecodedEntry], limit: int, known: List[str], context: str) -> Optional[int]:
    if not known:
        return None
    wanted = {k.lower() for k in known}
    for idx, entry in enumerate(entries[:limit]):
        text = entry.text
        if not text:
            continue
        if context == CONTEXT_COMMODITY:
            # Only code-like literals qualify, so a data cell such as "850,431" never matches
            compact = text.replace(".", "")
            if not compact.isdigit() or len(compact) < 6:
                continue
            candidate = clean_hts_to_six(compact)
        else:
            candidate = text.lower()
        if candidate in wanted:
            return idx
    return None


def _locate_hts10(entries: List[DecodedEntry], limit: int, known: List[str], context: str) -> Optional[int]:
    if context != CONTEXT_COMMODITY:
        return None
    for idx, entry in enumerate(entries[:limit]):
        if HTS10_PATTERN.match(entry.text.replace(".", "")):
            return idx
    return None


def _locate_leading_name(entries: List[DecodedEntry], limit: int, known: List[str], context: str) -> Optional[int]:
    # Country tables lead with the country name
    if context != CONTEXT_COUNTRY or not entries or limit < 1:
        return None
    text = entries[0].text
    if text and not looks_numeric(text):
        return 0
    return None


KEY_LOCATORS: Tuple[KeyLocator, ...] = (
    _locate_known_key,
    _locate_hts10,
    _locate_leading_name,
)


def locate_key(entries: List[DecodedEntry], axis: YearAxis, known: List[str], context: str) -> Optional[int]:
    """Index of the row's descriptor key, searching only the descriptor region."""
    limit = min(axis.column_indices) if axis.has_indices else len(entries)
    for locator in KEY_LOCATORS:
        idx = locator(entries, limit, known, context)
        if idx is not None:
            return idx
    return None


def _is_unit_candidate(entry: Optional[DecodedEntry]) -> bool:
    if entry is None or entry.suppressed or not isinstance(entry.value, str):
        return False
    text = entry.text
    if not text or year_label(text[:4]) == text[:4]:
        return False
    return not looks_numeric(text)


def _is_description(entry: Optional[DecodedEntry]) -> bool:
    # Descriptions may start with a digit ("3-phase transformers"); only real numbers are data
    if entry is None or entry.suppressed or not isinstance(entry.value, str):
        return False
    text = entry.text
    return text.lower() not in NULL_LITERALS and parse_number(text) is None


def _guess_unit(descriptors: List[DecodedEntry]) -> str:
    for entry in descriptors:
        if UNIT_WORDS.search(entry.text):
            return entry.text
    return ""


def map_index_exact(entries: List[DecodedEntry], axis: YearAxis) -> Dict[str, Optional[float]]:
    values: Dict[str, Optional[float]] = {}
    for year, idx in zip(axis.years, axis.column_indices):
        values[year] = cell_number(entries[idx]) if 0 <= idx < len(entries) else None
    return values


def map_trailing_window(data: List[DecodedEntry], years: Sequence[str]) -> Dict[str, Optional[float]]:
    values: Dict[str, Optional[float]] = {year: None for year in years}
    if not years or not data:
        return values
    window = data[-len(years):]
    # Fewer data cells than years: the cells belong to the most recent years
    offset = len(years) - len(window)
    for i, entry in enumerate(window):
        values[years[offset + i]] = cell_number(entry)
    return values


def map_total_values(
    entries: List[DecodedEntry],
    table: Any,
    axis: YearAxis,
    years: Sequence[str] = (),
) -> Dict[str, Optional[float]]:
    """
    Year map for a table's aggregate row.

    Exact column indices apply only when the row spans every flattened column;
    otherwise the trailing window is aligned with the axis (or working) years.
    """
    if axis.has_indices and len(entries) == len(flatten_columns(table)):
        return map_index_exact(entries, axis)
    return map_trailing_window(entries, list(axis.years) or list(years))


def parse_row(
    row: Any,
    axis: YearAxis,
    known_keys: Sequence[str],
    context: str = CONTEXT_COMMODITY,
    years: Optional[Sequence[str]] = None,
    mapping: str = MAPPING_AUTO,
) -> Optional[ParsedRow]:
    """
    Parse one raw row against a resolved year axis.

    Args:
        row: Raw row mapping (``rowEntries`` or ``entries``)
        axis: Year axis resolved for the row's table
        known_keys: Commodity codes or country names relevant to the query
        context: "commodity" (HTS keys rolled up to HTS6) or "country"
        years: Working year axis; every year gets a key in the value map
        mapping: "index" (exact column indices), "positional" (trailing window) or "auto"

    Returns:
        ParsedRow, or None when the row has no entry list
    """
    entries = row_entries(row)
    if entries is None:
        return None

    known = normalize_known_keys(known_keys, context)
    key_idx = locate_key(entries, axis, known, context)

    unit = ""
    if key_idx is not None:
        key = entries[key_idx].text
        limit = min(axis.column_indices) if axis.has_indices else len(entries)
        pos = key_idx + 1
        description = ""
        if pos < limit and _is_description(entries[pos]):
            description = entries[pos].text
            pos += 1
        if pos < limit and _is_unit_candidate(entries[pos]):
            unit = entries[pos].text
            pos += 1
        elif context == CONTEXT_COUNTRY and description:
            # Country layout: [country, quantity description, years...]
            unit = description
        data_start = pos
    else:
        key = known[0] if known else TOTAL_KEY
        logger.debug(f"No key cell located; treating row as single-context {key}")
        # Single-context row: [label, values...]; the label may be missing
        has_label = bool(entries) and _is_unit_candidate(entries[0])
        description = entries[0].text if has_label else ""
        data_start = 1 if has_label else 0

    if not unit:
        unit = _guess_unit(entries[:data_start])

    working_years = list(years) if years else list(axis.years)
    use_index = axis.has_indices and mapping in (MAPPING_AUTO, MAPPING_INDEX)
    if use_index:
        values = map_index_exact(entries, axis)
    elif mapping == MAPPING_INDEX:
        values = {}
    else:
        local_years = list(axis.years) if axis.years else working_years
        values = map_trailing_window(entries[data_start:], local_years)

    for year in working_years:
        values.setdefault(year, None)

    return ParsedRow(
        key=key,
        rollup_key=rollup_key_for(key, context),
        description=description,
        unit=unit,
        values_by_year=values,
    )


def parse_table(
    table: Any,
    axis: YearAxis,
    known_keys: Sequence[str],
    context: str = CONTEXT_COMMODITY,
    years: Optional[Sequence[str]] = None,
    mapping: str = MAPPING_AUTO,
) -> List[ParsedRow]:
    """Parse every row of a table; unparsable rows are skipped."""
    parsed: List[ParsedRow] = []
    for row in table_rows(table):
        result = parse_row(row, axis, known_keys, context=context, years=years, mapping=mapping)
        if result is not None:
            parsed.append(result)
    return parsed
