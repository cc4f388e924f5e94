"""Zigbee Home Automation: pick a detected coordinator stick or enter the port."""
from __future__ import annotations

from typing import Any

from ..constants import HANDLER_KIND_HYBRID, ZIGBEE_RADIO_TYPES
from ..models import normalize_options
from .base import FlowHandler, device_options

RADIO_TYPE_FIELD = {
    "type": "select",
    "label": "Radio Type",
    "options": normalize_options(ZIGBEE_RADIO_TYPES),
    "default": "znp",
    "required": True,
}


class ZigbeeFlowHandler(FlowHandler):
    """Config flow for Zigbee coordinators."""

    handler_kind = HANDLER_KIND_HYBRID

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return self.async_create_entry(title="Zigbee Home Automation", data=user_input)

        devices = await self.async_wait_for_discovery("zigbee")
        if devices:
            serial_port = {
                "type": "select",
                "label": "Detected Zigbee Stick",
                "options": device_options(devices, "path"),
                "required": True,
            }
        else:
            serial_port = {
                "type": "string",
                "label": "Serial Port Path",
                "required": True,
            }

        return self.async_show_form(
            step_id="user",
            data_schema={"serial_port": serial_port, "radio_type": dict(RADIO_TYPE_FIELD)},
        )
