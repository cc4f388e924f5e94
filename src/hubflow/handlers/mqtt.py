"""MQTT: connect to a broker, optionally picked from the discovered ones."""
from __future__ import annotations

from typing import Any

from ..constants import HANDLER_KIND_HYBRID
from .base import FlowHandler, device_options

DEFAULT_MQTT_PORT = 1883


def _broker_fields() -> dict[str, dict[str, Any]]:
    return {
        "broker": {"type": "string", "label": "Broker", "required": True},
        "port": {"type": "number", "label": "Port", "default": DEFAULT_MQTT_PORT},
        "username": {"type": "string", "label": "Username"},
        "password": {"type": "password", "label": "Password"},
    }


class MQTTFlowHandler(FlowHandler):
    """Config flow for an MQTT broker."""

    handler_kind = HANDLER_KIND_HYBRID

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return self.async_create_entry(title="MQTT Broker", data=user_input)

        devices = await self.async_wait_for_discovery("mqtt")
        data_schema = {}
        if devices:
            # picking a broker is optional, the manual fields stay available
            data_schema["broker_id"] = {
                "type": "select",
                "label": "Discovered Brokers",
                "options": device_options(devices),
                "required": False,
            }
        data_schema.update(_broker_fields())
        return self.async_show_form(step_id="user", data_schema=data_schema)
