"""Z-Wave JS: pick a detected stick or point at a running Z-Wave JS server."""
from __future__ import annotations

from typing import Any

from ..constants import HANDLER_KIND_HYBRID
from .base import FlowHandler, device_options

DEFAULT_ZWAVE_URL = "ws://localhost:3000"

NETWORK_KEY_FIELD = {"type": "string", "label": "Network Key (Optional)"}


class ZWaveFlowHandler(FlowHandler):
    """Config flow for Z-Wave JS."""

    handler_kind = HANDLER_KIND_HYBRID

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return self.async_create_entry(title="Z-Wave JS", data=user_input)

        devices = await self.async_wait_for_discovery("zwave")
        if devices:
            data_schema = {
                "usb_path": {
                    "type": "select",
                    "label": "Detected Z-Wave Stick",
                    "options": device_options(devices, "path"),
                    "required": True,
                },
                "network_key": dict(NETWORK_KEY_FIELD),
            }
        else:
            data_schema = {
                "url": {
                    "type": "string",
                    "label": "URL",
                    "default": DEFAULT_ZWAVE_URL,
                    "required": True,
                },
                "network_key": dict(NETWORK_KEY_FIELD),
            }
        return self.async_show_form(step_id="user", data_schema=data_schema)
