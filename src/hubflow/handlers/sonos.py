"""Sonos: pick a discovered speaker or enter its address."""
from __future__ import annotations

from typing import Any

from ..constants import HANDLER_KIND_HYBRID
from .base import FlowHandler, device_options


class SonosFlowHandler(FlowHandler):
    """Config flow for Sonos speakers."""

    handler_kind = HANDLER_KIND_HYBRID

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return self.async_create_entry(title="Sonos", data=user_input)

        devices = await self.async_wait_for_discovery("sonos")
        if devices:
            host = {
                "type": "select",
                "label": "Discovered Sonos Speakers",
                "options": device_options(devices, "host"),
                "required": True,
            }
        else:
            host = {"type": "string", "label": "Host", "required": True}
        return self.async_show_form(step_id="user", data_schema={"host": host})
