"""Translate Home Assistant's serialized form schemas into local step schemas."""
from __future__ import annotations

from typing import Any

from ..models import normalize_options

# registry selector -> `dynamic_options` hint for the client. hubflow does not resolve
# these; the client lists the registry with the Home Assistant websocket command and
# maps each item to an option.
_REGISTRY_SELECTORS = {
    "area": {
        "source": "homeassistant",
        "command": "config/area_registry/list",
        "mapping": {"label": "name", "value": "area_id"},
    },
    "device": {
        "source": "homeassistant",
        "command": "config/device_registry/list",
        "mapping": {"label": "name", "value": "id"},
    },
    "entity": {
        "source": "homeassistant",
        "command": "config/entity_registry/list",
        "mapping": {"label": "name", "value": "entity_id"},
    },
}

_LEGACY_TYPES = {
    "select": "select",
    "multi_select": "multiselect",
    "integer": "number",
    "float": "number",
    "boolean": "boolean",
    "string": "string",
}


def _map_selector(selector: dict[str, Any], field: dict[str, Any]) -> None:
    if "select" in selector:
        config = selector["select"] or {}
        field["type"] = "multiselect" if config.get("multiple") else "select"
        field["options"] = normalize_options(config.get("options"))
    elif "boolean" in selector:
        field["type"] = "boolean"
    elif "number" in selector:
        field["type"] = "number"
        config = selector["number"] or {}
        for key in ("min", "max"):
            if config.get(key) is not None:
                field[key] = config[key]
    elif "text" in selector:
        config = selector["text"] or {}
        field["type"] = "password" if config.get("type") == "password" else "string"
    elif "theme" in selector:
        field["type"] = "select"
        field["options"] = [{"label": "Default", "value": "default"}]
    else:
        for name, dynamic_options in _REGISTRY_SELECTORS.items():
            if name in selector:
                field["type"] = "select"
                field["dynamic_options"] = dict(dynamic_options)
                break


def map_ha_field(ha_field: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Map one serialized Home Assistant field to (name, field schema)."""
    name = ha_field["name"]
    description = ha_field.get("description")
    field: dict[str, Any] = {
        "type": "string",
        "label": description if isinstance(description, str) else name,
        "required": ha_field.get("required") is not False
        and not ha_field.get("optional"),
    }
    if isinstance(description, str):
        field["description"] = description
    if "default" in ha_field:
        field["default"] = ha_field["default"]
    elif isinstance(description, dict) and "suggested_value" in description:
        field["default"] = description["suggested_value"]

    if ha_field.get("selector"):
        _map_selector(ha_field["selector"], field)
    else:
        field["type"] = _LEGACY_TYPES.get(ha_field.get("type", "string"), "string")
        if ha_field.get("options"):
            field["options"] = normalize_options(ha_field["options"])
        if ha_field.get("valueMin") is not None:
            field["min"] = ha_field["valueMin"]
        if ha_field.get("valueMax") is not None:
            field["max"] = ha_field["valueMax"]
    return name, field


def map_ha_schema(ha_schema: Any) -> dict[str, dict[str, Any]]:
    """Map Home Assistant's `data_schema` list to a local step schema.

    Bare strings in the list become required string fields.
    """
    if not isinstance(ha_schema, list):
        return {}
    schema = {}
    for ha_field in ha_schema:
        if isinstance(ha_field, str):
            ha_field = {"name": ha_field}
        name, field = map_ha_field(ha_field)
        schema[name] = field
    return schema
