# WORKFLOW: Cell decoding for trade statistics report tables.
# Used by: Year axis resolver, row parser, fallback stages, published totals
# Functions:
# 1. decode_entry() - Normalize a raw cell (scalar or {value, suppressed}) to one shape
# 2. parse_number() - Parse a cell literal to float or None
# 3. cell_number() - Numeric value of a decoded cell (suppressed cells are None)
# 4. year_label() - Extract the canonical 4-digit year from a column label
#
# Decode flow: raw entry -> DecodedEntry(value, suppressed) -> number | None
# Suppressed cells are redacted by the source and are never read as zero.

"""
Cell decoding helpers for trade statistics report tables.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

YEAR_PATTERN = re.compile(r"(19|20)\d{2}")
NULL_LITERALS = {"", "not valid"}

Scalar = Union[str, int, float, None]


@dataclass(frozen=True)
class DecodedEntry:
    """A table cell after ingestion: raw literal plus suppression flag."""

    value: Scalar
    suppressed: bool = False

    @property
    def text(self) -> str:
        if self.value is None:
            return ""
        return str(self.value).strip()


def _is_suppressed(flag: Any) -> bool:
    # The source reports the flag as a boolean or as 1/0
    if isinstance(flag, bool):
        return flag
    if isinstance(flag, (int, float)):
        return flag == 1
    if isinstance(flag, str):
        return flag.strip().lower() in ("1", "true")
    return False


def decode_entry(raw: Any) -> DecodedEntry:
    """
    Decode one raw row entry.

    Args:
        raw: Scalar (string/number) or a mapping with ``value`` and optional ``suppressed``

    Returns:
        DecodedEntry with a scalar value (or None) and the suppression flag
    """
    if isinstance(raw, Mapping):
        value = raw.get("value")
        if isinstance(value, (Mapping, list, tuple)):
            value = None
        return DecodedEntry(value=value, suppressed=_is_suppressed(raw.get("suppressed")))
    if isinstance(raw, bool) or isinstance(raw, (list, tuple)):
        return DecodedEntry(value=None)
    if raw is None or isinstance(raw, (str, int, float)):
        return DecodedEntry(value=raw)
    return DecodedEntry(value=None)


def decode_entries(raw_entries: Any) -> List[DecodedEntry]:
    """Decode a row's entry list; anything that is not a list decodes to []."""
    if not isinstance(raw_entries, (list, tuple)):
        return []
    return [decode_entry(raw) for raw in raw_entries]


def finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_number(value: Scalar) -> Optional[float]:
    """
    Parse a cell literal to a number.

    Thousands separators are stripped; "Not Valid", empty strings and anything
    non-numeric become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return finite_or_none(value)
    text = str(value).strip()
    if text.lower() in NULL_LITERALS:
        return None
    try:
        return finite_or_none(float(text.replace(",", "")))
    except ValueError:
        return None


def cell_number(entry: DecodedEntry) -> Optional[float]:
    """Numeric value of a decoded cell. Suppression forces None regardless of the literal."""
    if entry.suppressed:
        return None
    return parse_number(entry.value)


def year_label(label: Any) -> Optional[str]:
    """Return the 4-digit year contained in ``label``, or None."""
    if label is None:
        return None
    match = YEAR_PATTERN.search(str(label))
    return match.group(0) if match else None


def looks_numeric(text: str) -> bool:
    if not text:
        return False
    return parse_number(text) is not None or text[0].isdigit()


def sort_years(years: Sequence[str]) -> List[str]:
    """Sort year labels ascending as integers, dropping duplicates."""
    return sorted(set(years), key=int)
