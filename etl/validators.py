# WORKFLOW: Structural validation of trade statistics report payloads.
# Used by: Trade stats engine (diagnostic logging)
# Functions:
# 1. validate_hts_code() - Validate HTS code format
# 2. validate_known_keys() - Validate the caller's commodity/country context
# 3. validate_table() - Check one table's column/row structure
# 4. validate_payload() - Check the payload envelope and every table
# 5. generate_validation_report() - Create validation summary
#
# Validation flow: Payload -> Envelope check -> Per-table structure checks -> Report
# Findings are diagnostics only: the engine still degrades to partial results
# instead of rejecting a payload.

"""
Structural validation of trade statistics report payloads.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from etl.entries import year_label
from etl.table_locator import payload_tables, resolve_metric_key, table_name
from etl.year_axis import flatten_columns

logger = logging.getLogger(__name__)


def validate_hts_code(hts_code: str) -> bool:
    """
    Validate HTS code format.

    Args:
        hts_code: HTS code, with or without dots (e.g. "8504.31.4000")

    Returns:
        True if valid, False otherwise
    """
    if not hts_code or not isinstance(hts_code, str):
        return False

    # HTS codes are 4-10 digits once the dots are removed
    return bool(re.match(r'^\d{4,10}$', hts_code.strip().replace('.', '')))


def validate_known_keys(known_keys: Sequence[str], context: str) -> Tuple[bool, List[str]]:
    """
    Validate the key context passed by the caller.

    Args:
        known_keys: Commodity codes or country names
        context: "commodity" or "country"

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []
    for key in known_keys or []:
        if not isinstance(key, str) or not key.strip():
            errors.append(f"Empty or non-string key: {key!r}")
        elif context == "commodity" and not validate_hts_code(key):
            errors.append(f"Invalid HTS code: {key}")
    return len(errors) == 0, errors


def validate_table(table: Any) -> Tuple[bool, List[str]]:
    """
    Validate one report table.

    Args:
        table: Raw table mapping

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if not isinstance(table, Mapping):
        return False, ["Table is not an object"]

    if not table_name(table):
        errors.append("Table has no name")
    elif resolve_metric_key(table) is None:
        errors.append(f"Table name not recognised as a metric: {table_name(table)}")

    if not isinstance(table.get("column_groups"), list):
        errors.append("Missing column_groups")
    else:
        labels = flatten_columns(table)
        if not any(year_label(label) for label in labels):
            errors.append("No year columns in column_groups")

    row_groups = table.get("row_groups")
    if not isinstance(row_groups, list) or not row_groups:
        errors.append("Missing row_groups")
    else:
        row_count = 0
        for group in row_groups:
            if not isinstance(group, Mapping):
                errors.append("Row group is not an object")
                continue
            rows = group.get("rowsNew") if isinstance(group.get("rowsNew"), list) else group.get("rows")
            if isinstance(rows, list):
                row_count += len(rows)
        if row_count == 0:
            errors.append("Table has no rows")

    total = table.get("total")
    if total is not None and not (isinstance(total, Mapping) and isinstance(total.get("values"), list)):
        errors.append("Malformed total (expected {values: [...]})")

    return len(errors) == 0, errors


def validate_payload(payload: Any) -> Dict[str, Tuple[bool, List[str]]]:
    """
    Validate the payload envelope and each table.

    Args:
        payload: Deserialized report payload

    Returns:
        Dictionary of validation results keyed by table label
    """
    results: Dict[str, Tuple[bool, List[str]]] = {}
    tables = payload_tables(payload)
    if not tables:
        results["payload"] = (False, ["Payload contains no tables"])
        return results

    results["payload"] = (True, [])
    for idx, table in enumerate(tables):
        label = f"{idx}:{table_name(table) or 'unnamed'}"
        results[label] = validate_table(table)
    return results


def generate_validation_report(validation_results: Dict[str, Tuple[bool, List[str]]]) -> Dict[str, Any]:
    """
    Generate validation report.

    Args:
        validation_results: Dictionary of validation results

    Returns:
        Validation report dictionary
    """
    report = {
        'timestamp': datetime.now().isoformat(),
        'overall_valid': True,
        'tables': {},
        'summary': {
            'total_tables': len(validation_results),
            'valid_tables': 0,
            'invalid_tables': 0,
            'total_errors': 0
        }
    }

    for name, (is_valid, errors) in validation_results.items():
        report['tables'][name] = {
            'valid': is_valid,
            'error_count': len(errors),
            'errors': errors
        }

        if is_valid:
            report['summary']['valid_tables'] += 1
        else:
            report['summary']['invalid_tables'] += 1
            report['overall_valid'] = False

        report['summary']['total_errors'] += len(errors)

    logger.info(f"Validation report generated: {report['summary']}")
    return report
