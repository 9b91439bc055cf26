"""JSON Schema helpers for tool arguments."""

from typing import Any

from jsonschema import Draft7Validator

TYPE_MAPPING = {
    "string": "string",
    "str": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
}


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def object_schema(
    parameters: list[dict[str, Any]],
    additional_properties: bool = False
) -> dict[str, Any]:
    """
    Build an object schema from simple parameter definitions.

    Each parameter is ``{"name", "type", "description", "required"?, "max_length"?}``.
    Parameters are required unless ``required`` is False.
    """
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in parameters:
        param_schema: dict[str, Any] = {
            "type": TYPE_MAPPING.get(param.get("type", "string"), "string"),
            "description": param.get("description", ""),
        }
        if "max_length" in param:
            param_schema["maxLength"] = param["max_length"]
        properties[param["name"]] = param_schema
        if param.get("required", True):
            required.append(param["name"])

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": additional_properties,
    }
