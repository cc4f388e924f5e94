"""HomeKit Controller: pair with a discovered HomeKit accessory."""
from __future__ import annotations

from typing import Any

from ..constants import ABORT_NO_DEVICES_FOUND, HANDLER_KIND_DISCOVERY
from .base import FlowHandler


class HomeKitControllerFlowHandler(FlowHandler):
    """Config flow for HomeKit accessories. Accessories cannot be entered by hand."""

    handler_kind = HANDLER_KIND_DISCOVERY

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return self.async_create_entry(title="HomeKit Device", data=user_input)

        devices = await self.async_wait_for_discovery("homekit")
        if not devices:
            return self.async_abort(reason=ABORT_NO_DEVICES_FOUND)

        options = [
            {
                "label": f"{device.name} ({device.model})" if device.model else device.name,
                "value": device.id,
            }
            for device in devices
        ]
        return self.async_show_form(
            step_id="user",
            data_schema={
                "device_id": {
                    "type": "select",
                    "label": "Select HomeKit Device",
                    "options": options,
                    "required": True,
                },
                "pairing_code": {
                    "type": "string",
                    "label": "Pairing Code",
                    "required": True,
                    "pattern": r"^\d{3}-?\d{2}-?\d{3}$",
                },
            },
        )
