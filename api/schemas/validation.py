# WORKFLOW: JSON Schema validation module (hard gate for all responses).
# Used by: Trade report endpoints, testing
# Functions:
# 1. validate_report() - Validate a Pydantic response model against its JSON schema definition
# 2. validate_response_dict() - Validate dictionary against a named schema definition
# 3. get_validation_errors() - Get detailed validation errors without raising
#
# Validation flow: Engine output -> Schema validation -> Pass/Fail
# This is the final gate ensuring responses carry only finite numbers or null.
# No response can be returned without passing this validation.

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "trade_stats_response.schema.json"


class SchemaValidator:
    """JSON Schema validator for trade statistics responses."""

    def __init__(self, schema_path: Path = SCHEMA_PATH):
        self.schema_path = schema_path
        self.schema = self._load_schema()

    def _load_schema(self) -> Dict[str, Any]:
        """Load the JSON schema from file."""
        try:
            with open(self.schema_path, "r") as f:
                return json.load(f)
        except Exception as e:
            logger.error(f"Failed to load JSON schema: {e}")
            raise

    def _definition(self, name: str) -> Dict[str, Any]:
        if name not in self.schema["$defs"]:
            raise KeyError(f"Unknown response schema: {name}")
        return {
            "$schema": self.schema["$schema"],
            "$ref": f"#/$defs/{name}",
            "$defs": self.schema["$defs"],
        }

    def validate_response(self, response_data: Any, name: str) -> bool:
        """
        Validate response against one schema definition.

        Args:
            response_data: JSON-compatible response data
            name: Definition name, e.g. "NormalizedReport"

        Returns:
            True if valid, raises ValidationError if invalid
        """
        try:
            jsonschema.validate(instance=response_data, schema=self._definition(name))
            logger.debug(f"Response validated against {name}")
            return True
        except jsonschema.ValidationError as e:
            logger.error(f"Schema validation failed for {name}: {e.message}")
            raise

    def get_validation_errors(self, response_data: Any, name: str) -> Optional[str]:
        """
        Get detailed validation errors without raising exception.

        Returns:
            Error message if invalid, None if valid
        """
        try:
            jsonschema.validate(instance=response_data, schema=self._definition(name))
            return None
        except jsonschema.ValidationError as e:
            return f"Schema validation error: {e.message} at path: {'/'.join(str(p) for p in e.path)}"


# Global validator instance
schema_validator = SchemaValidator()


def validate_report(model: Any, name: Optional[str] = None) -> bool:
    """
    Validate a Pydantic model (or list of models) by dumping it to JSON-compatible data.

    The definition name defaults to the model's class name.
    """
    if isinstance(model, list):
        data = [item.model_dump(mode="json") for item in model]
    else:
        data = model.model_dump(mode="json")
        name = name or type(model).__name__
    if name is None:
        raise ValueError("Schema definition name required for list responses")
    return schema_validator.validate_response(data, name)


def validate_response_dict(response_dict: Any, name: str) -> bool:
    """Convenience function to validate response data against a named definition."""
    return schema_validator.validate_response(response_dict, name)


def get_validation_errors(response_dict: Any, name: str) -> Optional[str]:
    return schema_validator.get_validation_errors(response_dict, name)
