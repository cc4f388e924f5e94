"""Base class and result helpers for config flow handlers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any

from ..constants import (
    DEFAULT_DISCOVERY_TIMEOUT,
    HANDLER_KIND_MANUAL,
    RESULT_TYPE_ABORT,
    RESULT_TYPE_CREATE_ENTRY,
    RESULT_TYPE_EXTERNAL_STEP,
    RESULT_TYPE_FORM,
    RESULT_TYPE_MENU,
    STEP_USER,
)
from ..exceptions import NotFound
from ..models import DiscoveredDevice, FlowInstance

logger = logging.getLogger("__main__")


# step results


def show_form(
    step_id: str,
    data_schema: dict[str, dict[str, Any]] | None = None,
    errors: dict[str, str] | None = None,
    description_placeholders: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Ask the user to fill in a form."""
    result = {
        "type": RESULT_TYPE_FORM,
        "step_id": step_id,
        "data_schema": data_schema or {},
        "errors": errors or {},
    }
    if description_placeholders:
        result["description_placeholders"] = description_placeholders
    return result


def show_menu(step_id: str, menu_options: list[str] | dict[str, str]) -> dict[str, Any]:
    """Let the user pick the next step."""
    return {
        "type": RESULT_TYPE_MENU,
        "step_id": step_id,
        "menu_options": menu_options,
    }


def external_step(step_id: str, url: str) -> dict[str, Any]:
    """Send the user to an external page; the flow resumes with the callback data."""
    return {"type": RESULT_TYPE_EXTERNAL_STEP, "step_id": step_id, "url": url}


def create_entry(title: str, data: dict[str, Any]) -> dict[str, Any]:
    """Finish the flow with a config entry."""
    return {"type": RESULT_TYPE_CREATE_ENTRY, "title": title, "data": dict(data)}


def abort(reason: str) -> dict[str, Any]:
    """Finish the flow without an entry."""
    return {"type": RESULT_TYPE_ABORT, "reason": reason}


def device_options(
    devices: list[DiscoveredDevice], identifier: str | None = None
) -> list[dict[str, Any]]:
    """Select options for discovered devices.

    The value is the device identifier named `identifier` when the device has it,
    otherwise the device id.
    """
    options = []
    for device in devices:
        value = device.identifiers.get(identifier) if identifier else None
        options.append({"label": device.name, "value": value or device.id})
    return options


@dataclass
class FlowServices:
    """Collaborators handed to every handler."""

    discovery: Any = None
    hub_client: Any = None
    definitions: Any = None
    settings: dict[str, Any] = field(default_factory=dict)


class FlowHandler:
    """Base class of a config flow handler.

    A handler implements one coroutine per step, named `async_step_<step_id>`. Each takes
    the submitted input (None when the step is first shown) and returns a step result.
    The handler reads and writes the flow's accumulated `data` and private `context`
    through `self.flow`; the flow manager persists them after every step.
    """

    handler_kind = HANDLER_KIND_MANUAL
    initial_step = STEP_USER
    discovery_timeout = DEFAULT_DISCOVERY_TIMEOUT

    def __init__(self, flow: FlowInstance, services: FlowServices | None = None) -> None:
        self.flow = flow
        self.services = services or FlowServices()

    @property
    def domain(self) -> str:
        return self.flow.integration_domain

    async def async_step(
        self, step_id: str, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run the coroutine bound to `step_id`."""
        method = getattr(self, f"async_step_{step_id}", None)
        if method is None:
            raise NotFound(f"Step {step_id} not found for {self.domain}")
        return await method(user_input)

    async def async_cleanup(self) -> None:
        """Release external resources after the flow aborted on an error."""

    def async_show_form(self, **kwargs: Any) -> dict[str, Any]:
        return show_form(**kwargs)

    def async_show_menu(self, **kwargs: Any) -> dict[str, Any]:
        return show_menu(**kwargs)

    def async_external_step(self, **kwargs: Any) -> dict[str, Any]:
        return external_step(**kwargs)

    def async_create_entry(self, **kwargs: Any) -> dict[str, Any]:
        return create_entry(**kwargs)

    def async_abort(self, **kwargs: Any) -> dict[str, Any]:
        return abort(**kwargs)

    def _discovery_timeout(self, protocol: str) -> float:
        settings = self.services.settings.get("discovery") or {}
        per_protocol = settings.get("timeouts") or {}
        return per_protocol.get(protocol) or settings.get("timeout") or self.discovery_timeout

    async def async_wait_for_discovery(
        self, protocol: str, config: dict[str, Any] | None = None
    ) -> list[DiscoveredDevice]:
        """Discover devices for `protocol`, bounded by the discovery timeout.

        An empty list means nothing was found and the handler should offer manual entry.

        Raises:
            UpstreamError: If the discovery provider fails
        """
        discovery = self.services.discovery
        if discovery is None:
            return []

        timeout = self._discovery_timeout(protocol)
        try:
            devices = await asyncio.wait_for(
                discovery.discover(protocol, config), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[FLOW] Discovery for %s timed out after %s s",
                protocol,
                timeout,
                extra={"flow_id": self.flow.id},
            )
            return []
        logger.debug(
            "[FLOW] Discovery for %s returned %s device(s)",
            protocol,
            len(devices),
            extra={"flow_id": self.flow.id},
        )
        return devices
