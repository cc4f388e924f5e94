"""
Handler that forwards a whole flow to Home Assistant's own config flow engine.

Home Assistant's answers are translated into local step results by
`map_external_response`, one mapping function per Home Assistant result type.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from ..constants import (
    ABORT_PROXY_RESTART_UNSUPPORTED,
    CONTEXT_HA_FLOW_ID,
    HANDLER_KIND_PROXY,
    MENU_FIELD,
    RESULT_TYPE_ABORT,
    RESULT_TYPE_CREATE_ENTRY,
)
from ..exceptions import UpstreamError
from ..models import normalize_options
from .base import FlowHandler, abort, create_entry, external_step, show_form
from .schema_mapper import map_ha_schema

logger = logging.getLogger("__main__")


def _map_form(response: dict[str, Any]) -> dict[str, Any]:
    return show_form(
        step_id=response.get("step_id", ""),
        data_schema=map_ha_schema(response.get("data_schema")),
        errors=response.get("errors"),
        description_placeholders=response.get("description_placeholders"),
    )


def _map_menu(response: dict[str, Any]) -> dict[str, Any]:
    # a menu carrying its own schema is rendered like a form
    if response.get("data_schema"):
        return _map_form(response)
    options = normalize_options(response.get("menu_options"))
    field: dict[str, Any] = {
        "type": "select",
        "label": "Select an option",
        "required": True,
        "options": options,
    }
    if options:
        field["default"] = options[0]["value"]
    return show_form(
        step_id=response.get("step_id", ""),
        data_schema={MENU_FIELD: field},
        description_placeholders=response.get("description_placeholders"),
    )


def _map_external(response: dict[str, Any]) -> dict[str, Any]:
    return external_step(step_id=response.get("step_id", ""), url=response.get("url", ""))


def _map_waiting(response: dict[str, Any]) -> dict[str, Any]:
    # external_done / progress: submit an empty form to continue
    return show_form(
        step_id=response.get("step_id", ""),
        description_placeholders=response.get("description_placeholders"),
    )


def _map_create_entry(response: dict[str, Any]) -> dict[str, Any]:
    return create_entry(
        title=response.get("title", ""),
        data=response.get("data") or response.get("result") or {},
    )


def _map_abort(response: dict[str, Any]) -> dict[str, Any]:
    return abort(reason=response.get("reason", "unknown"))


RESPONSE_MAPPERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "form": _map_form,
    "menu": _map_menu,
    "external": _map_external,
    "external_done": _map_waiting,
    "progress": _map_waiting,
    "progress_done": _map_waiting,
    "create_entry": _map_create_entry,
    "abort": _map_abort,
}


def map_external_response(response: dict[str, Any]) -> dict[str, Any]:
    """Translate a Home Assistant flow result into a local step result.

    Non-terminal results carry the external flow id in `data`.

    Raises:
        UpstreamError: If Home Assistant returned an unknown result type
    """
    response_type = response.get("type")
    mapper = RESPONSE_MAPPERS.get(response_type)
    if mapper is None:
        raise UpstreamError(f"Unsupported flow result type: {response_type}")
    result = mapper(response)
    if result["type"] not in (RESULT_TYPE_CREATE_ENTRY, RESULT_TYPE_ABORT):
        result["data"] = {CONTEXT_HA_FLOW_ID: response.get("flow_id")}
    return result


class HAProxyFlowHandler(FlowHandler):
    """Runs the flow on Home Assistant, whatever step the local flow is at."""

    handler_kind = HANDLER_KIND_PROXY

    async def async_step(
        self, step_id: str, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        client = self.services.hub_client
        if client is None:
            raise UpstreamError("No Home Assistant connection configured")

        ha_flow_id = self.flow.context.get(CONTEXT_HA_FLOW_ID)
        try:
            if ha_flow_id is None:
                response = await client.start_config_flow(self.domain)
                self.flow.context[CONTEXT_HA_FLOW_ID] = response.get("flow_id")
            elif user_input is None:
                # the external flow cannot be re-entered without input
                return abort(ABORT_PROXY_RESTART_UNSUPPORTED)
            else:
                response = await client.handle_config_flow_step(ha_flow_id, user_input)
        except UpstreamError as err:
            logger.error(
                "[FLOW] External flow for %s failed at %s: %s",
                self.domain,
                step_id,
                err,
                extra={"flow_id": self.flow.id},
            )
            self.flow.context.pop(CONTEXT_HA_FLOW_ID, None)
            return abort(str(err))

        result = map_external_response(response)
        if result["type"] in (RESULT_TYPE_CREATE_ENTRY, RESULT_TYPE_ABORT):
            self.flow.context.pop(CONTEXT_HA_FLOW_ID, None)
        return result

    async def async_cleanup(self) -> None:
        """Abort the external flow after the local flow failed."""
        ha_flow_id = self.flow.context.pop(CONTEXT_HA_FLOW_ID, None)
        if ha_flow_id and self.services.hub_client is not None:
            await self.services.hub_client.abort_config_flow(ha_flow_id)
