"""ESPHome: pick a discovered node or enter its address."""
from __future__ import annotations

from typing import Any

from ..constants import HANDLER_KIND_HYBRID
from .base import FlowHandler, device_options

DEFAULT_ESPHOME_PORT = 6053

PASSWORD_FIELD = {"type": "password", "label": "Encryption Key (Optional)"}


class ESPHomeFlowHandler(FlowHandler):
    """Config flow for ESPHome nodes."""

    handler_kind = HANDLER_KIND_HYBRID

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            name = user_input.get("host") or user_input.get("device_id")
            return self.async_create_entry(title=f"ESPHome: {name}", data=user_input)

        devices = await self.async_wait_for_discovery("esphome")
        if devices:
            data_schema = {
                "device_id": {
                    "type": "select",
                    "label": "Discovered ESPHome Devices",
                    "options": device_options(devices),
                    "required": True,
                },
                "password": dict(PASSWORD_FIELD),
            }
        else:
            data_schema = {
                "host": {"type": "string", "label": "Host / IP Address", "required": True},
                "port": {"type": "number", "label": "Port", "default": DEFAULT_ESPHOME_PORT},
                "password": dict(PASSWORD_FIELD),
            }
        return self.async_show_form(step_id="user", data_schema=data_schema)
