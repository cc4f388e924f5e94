"""
Validation of submitted step input against a step schema.

The visible part of a step schema is compiled into a voluptuous schema, so a form is
validated the same way for local handlers, definition driven steps and proxied forms.
"""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from .conditional_engine import get_visible_schema
from .exceptions import ValidationError

logger = logging.getLogger("__main__")


def _number(value: Any) -> int | float:
    """Coerce to a number, keeping integral values as int."""
    if isinstance(value, bool):
        raise vol.Invalid("expected a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as err:
        raise vol.Invalid("expected a number") from err
    if number.is_integer() and not (isinstance(value, str) and "." in value):
        return int(number)
    return number


def _option_values(field_schema: dict[str, Any]) -> list[Any]:
    return [option.get("value") for option in field_schema.get("options") or []]


def field_validator(field_schema: dict[str, Any]) -> Any:
    """Build the voluptuous validator for a single field."""
    field_type = field_schema.get("type", "string")
    validators: list[Any] = []

    if field_type in ("string", "password"):
        validators.append(vol.Coerce(str))
    elif field_type == "url":
        validators += [str, vol.Url()]
    elif field_type == "email":
        validators += [str, vol.Email()]
    elif field_type == "number":
        validators.append(_number)
    elif field_type == "boolean":
        validators.append(vol.Boolean())
    elif field_type == "select":
        values = _option_values(field_schema)
        # selects backed by dynamic options accept any value
        validators.append(vol.In(values) if values else vol.Any(str, int, float))
    elif field_type == "multiselect":
        values = _option_values(field_schema)
        validators.append([vol.In(values)] if values else list)
    elif field_type == "object":
        validators.append(dict)
    elif field_type == "array":
        validators.append(list)

    if field_type in ("string", "password") and (
        "min" in field_schema or "max" in field_schema
    ):
        validators.append(
            vol.Length(min=field_schema.get("min"), max=field_schema.get("max"))
        )
    if field_type == "number" and ("min" in field_schema or "max" in field_schema):
        validators.append(
            vol.Range(min=field_schema.get("min"), max=field_schema.get("max"))
        )
    if field_schema.get("pattern") and field_type in ("string", "password", "url", "email"):
        validators.append(vol.Match(field_schema["pattern"]))

    if not validators:
        return object
    if len(validators) == 1:
        return validators[0]
    return vol.All(*validators)


def build_voluptuous_schema(
    schema: dict[str, dict[str, Any]], form_data: dict[str, Any] | None = None
) -> vol.Schema:
    """Compile the visible fields of a step schema into a voluptuous schema."""
    compiled = {}
    for name, field_schema in get_visible_schema(schema, form_data or {}).items():
        marker = vol.Required if field_schema.get("required") else vol.Optional
        if "default" in field_schema and field_schema["default"] is not None:
            key = marker(name, default=field_schema["default"])
        else:
            key = marker(name)
        compiled[key] = field_validator(field_schema)
    return vol.Schema(compiled, extra=vol.ALLOW_EXTRA)


def validate_step_input(
    schema: dict[str, dict[str, Any]],
    user_input: dict[str, Any] | None,
    flow_data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Validate input for a step.

    Visibility is evaluated on the flow data merged with the submitted input.

    Returns:
        The validated input with defaults applied and values coerced

    Raises:
        ValidationError: With one message per offending field
    """
    user_input = dict(user_input or {})
    form_data = {**(flow_data or {}), **user_input}
    try:
        return build_voluptuous_schema(schema, form_data)(user_input)
    except vol.MultipleInvalid as err:
        errors = {}
        for error in err.errors:
            field = str(error.path[0]) if error.path else "base"
            errors.setdefault(field, error.msg)
        logger.debug("[VALIDATION] Input rejected: %s", errors)
        raise ValidationError(errors) from err
