"""
Validation of flow definitions before they are stored.

The structure is checked with voluptuous, then the step graph is checked for duplicate
ids, dangling step references, fields referenced before they are defined and
dependency cycles. Every problem is reported as a dict with `path`, `message` and `code`.
"""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from .conditional_engine import find_dependency_cycle, get_field_dependencies
from .constants import (
    FIELD_OPERATORS,
    FIELD_TYPES,
    HANDLER_KINDS,
    STEP_CONFIRM,
    STEP_OPERATORS,
)
from .exceptions import DefinitionError

logger = logging.getLogger("__main__")

CONDITIONAL_SCHEMA = vol.Schema(
    {
        vol.Required("field"): str,
        vol.Required("operator"): vol.In(FIELD_OPERATORS),
        vol.Optional("value"): object,
    }
)

FIELD_SCHEMA = vol.Schema(
    {
        vol.Required("type"): vol.In(FIELD_TYPES),
        vol.Optional("label"): str,
        vol.Optional("description"): str,
        vol.Optional("required", default=False): bool,
        vol.Optional("default"): object,
        vol.Optional("options"): vol.Any(list, dict),
        vol.Optional("dynamic_options"): vol.Any(str, dict),
        vol.Optional("conditional"): CONDITIONAL_SCHEMA,
        vol.Optional("depends_on"): [str],
        vol.Optional("min"): vol.Any(int, float),
        vol.Optional("max"): vol.Any(int, float),
        vol.Optional("pattern"): str,
    },
    extra=vol.ALLOW_EXTRA,
)


def _step_condition(value: Any) -> Any:
    """Validate a step condition, recursing into nested groups."""
    if not isinstance(value, dict):
        raise vol.Invalid("expected a condition mapping")
    if value.get("conditions"):
        vol.Schema(
            {
                vol.Optional("logic", default="and"): vol.In(("and", "or")),
                vol.Required("conditions"): [_step_condition],
            }
        )(value)
        return value
    vol.Schema(
        {
            vol.Optional("depends_on"): str,
            vol.Optional("field"): str,
            vol.Required("operator"): vol.In(STEP_OPERATORS),
            vol.Optional("value"): object,
        }
    )(value)
    if not value.get("depends_on") and not value.get("field"):
        raise vol.Invalid("condition needs depends_on or field")
    return value


STEP_SCHEMA = vol.Schema(
    {
        vol.Optional("step_id"): vol.All(str, vol.Length(min=1)),
        vol.Optional("title"): str,
        vol.Optional("description"): str,
        vol.Optional("schema", default={}): {str: FIELD_SCHEMA},
        vol.Optional("condition"): _step_condition,
        vol.Optional("transitions"): [
            {
                vol.Required("next_step"): str,
                vol.Optional("condition"): _step_condition,
            }
        ],
        vol.Optional("next_step"): str,
    }
)

STEP_ID_SCHEMA = vol.Schema({vol.Required("step_id"): str}, extra=vol.ALLOW_EXTRA)

DEFINITION_SCHEMA = vol.Schema(
    {
        vol.Required("name"): vol.All(str, vol.Length(min=1)),
        vol.Optional("flow_type"): vol.In(HANDLER_KINDS),
        vol.Optional("description"): str,
        vol.Optional("initial_step"): str,
        vol.Required("steps"): vol.Any(
            vol.All([vol.All(STEP_SCHEMA, STEP_ID_SCHEMA)], vol.Length(min=1)),
            vol.All({str: STEP_SCHEMA}, vol.Length(min=1)),
        ),
    },
    extra=vol.ALLOW_EXTRA,
)


def _error(path: str, message: str, code: str) -> dict[str, str]:
    return {"path": path, "message": message, "code": code}


def _ordered_steps(steps: Any) -> list[tuple[str, dict[str, Any]]]:
    if isinstance(steps, dict):
        return [(step_id, step or {}) for step_id, step in steps.items()]
    return [(step.get("step_id"), step) for step in steps]


def _check_references(steps: list[tuple[str, dict]], definition: dict) -> list[dict]:
    errors = []
    step_ids = [step_id for step_id, _ in steps]

    duplicates = sorted({step_id for step_id in step_ids if step_ids.count(step_id) > 1})
    if duplicates:
        errors.append(
            _error(
                "steps",
                f"Duplicate step IDs found: {', '.join(duplicates)}",
                "DUPLICATE_STEP_ID",
            )
        )
    if STEP_CONFIRM in step_ids:
        errors.append(
            _error(
                "steps",
                f"Step ID '{STEP_CONFIRM}' is reserved",
                "RESERVED_STEP_ID",
            )
        )

    initial_step = definition.get("initial_step")
    if initial_step and initial_step not in step_ids:
        errors.append(
            _error(
                "initial_step",
                f"Initial step '{initial_step}' not found in steps",
                "INVALID_STEP_REFERENCE",
            )
        )

    for step_id, step in steps:
        targets = [step.get("next_step")] + [
            rule.get("next_step") for rule in step.get("transitions") or []
        ]
        for target in targets:
            if target and target not in step_ids:
                errors.append(
                    _error(
                        f"steps.{step_id}",
                        f"Next step '{target}' not found in steps",
                        "INVALID_STEP_REFERENCE",
                    )
                )
    return errors


def _check_fields(steps: list[tuple[str, dict]]) -> list[dict]:
    errors = []
    known_fields: set[str] = set()
    for step_id, step in steps:
        schema = step.get("schema") or {}
        for name, field_schema in schema.items():
            path = f"steps.{step_id}.schema.{name}"
            if field_schema.get("type") in ("select", "multiselect") and not (
                field_schema.get("options") or field_schema.get("dynamic_options")
            ):
                errors.append(
                    _error(
                        path,
                        "Select and multiselect fields must have options defined",
                        "REQUIRED_FIELD",
                    )
                )
            minimum, maximum = field_schema.get("min"), field_schema.get("max")
            if minimum is not None and maximum is not None and minimum > maximum:
                errors.append(
                    _error(
                        path,
                        "Field min value must be less than or equal to max value",
                        "INVALID_RANGE",
                    )
                )
            for dependency in get_field_dependencies(field_schema):
                if dependency not in known_fields:
                    errors.append(
                        _error(
                            path,
                            f"Field '{name}' references '{dependency}' before it is defined",
                            "FORWARD_REFERENCE",
                        )
                    )
            known_fields.add(name)

        cycle = find_dependency_cycle(schema)
        if cycle:
            errors.append(
                _error(
                    f"steps.{step_id}.schema",
                    f"Dependency cycle: {' -> '.join(cycle)}",
                    "DEPENDENCY_CYCLE",
                )
            )
    return errors


def get_flow_definition_errors(definition: dict[str, Any]) -> list[dict[str, str]]:
    """Return every problem found in a flow definition, empty when it is valid."""
    try:
        definition = DEFINITION_SCHEMA(definition)
    except vol.MultipleInvalid as err:
        return [
            _error(
                ".".join(str(part) for part in error.path) or "definition",
                error.msg,
                "INVALID_STRUCTURE",
            )
            for error in err.errors
        ]

    steps = _ordered_steps(definition["steps"])
    return _check_references(steps, definition) + _check_fields(steps)


def validate_flow_definition(definition: dict[str, Any]) -> dict[str, Any]:
    """Validate a flow definition.

    Raises:
        DefinitionError: With the list of problems found
    """
    errors = get_flow_definition_errors(definition)
    if errors:
        logger.error(
            "[DEFINITIONS] Invalid flow definition '%s': %s",
            definition.get("name") if isinstance(definition, dict) else definition,
            "; ".join(error["message"] for error in errors),
        )
        raise DefinitionError(errors)
    return definition
