"""Tests for the Home Assistant proxy handler."""
from __future__ import annotations

import pytest

from hubflow.exceptions import UpstreamError
from hubflow.handlers import FlowServices, HAProxyFlowHandler
from hubflow.handlers.ha_proxy import map_external_response
from hubflow.interfaces.ha_flow_client import HAFlowNotFoundError
from hubflow.models import FlowInstance


def _proxy(hub_client, context=None):
    flow = FlowInstance.create("hue", "proxy", context)
    return HAProxyFlowHandler(flow, FlowServices(hub_client=hub_client))


def test_form_is_mapped_with_its_schema():
    """Forms keep their step, errors and mapped fields."""
    result = map_external_response(
        {
            "type": "form",
            "flow_id": "ha-1",
            "step_id": "user",
            "data_schema": [{"name": "host", "type": "string", "required": True}],
            "errors": {"base": "cannot_connect"},
        }
    )
    assert result["type"] == "form"
    assert result["step_id"] == "user"
    assert result["errors"] == {"base": "cannot_connect"}
    assert result["data_schema"]["host"]["type"] == "string"
    assert result["data"] == {"ha_flow_id": "ha-1"}


def test_menu_options_from_value_label_pairs():
    """A menu given as value -> label pairs keeps the labels on the select."""
    result = map_external_response(
        {
            "type": "menu",
            "flow_id": "ha-1",
            "step_id": "user",
            "menu_options": {"a": "Option A", "b": "Option B"},
        }
    )
    field = result["data_schema"]["next_step_id"]
    assert field["options"] == [
        {"label": "Option A", "value": "a"},
        {"label": "Option B", "value": "b"},
    ]
    assert field["default"] == "a"
    assert field["required"] is True


def test_external_and_waiting_results():
    """External steps keep the url, finished external steps become an empty form."""
    external = map_external_response(
        {"type": "external", "flow_id": "ha-1", "step_id": "auth", "url": "https://x"}
    )
    assert external["type"] == "external_step"
    assert external["url"] == "https://x"

    done = map_external_response(
        {"type": "external_done", "flow_id": "ha-1", "step_id": "creation"}
    )
    assert done["type"] == "form"
    assert done["data_schema"] == {}


def test_terminal_results_do_not_carry_the_external_id():
    """Entries and aborts end the external flow."""
    entry = map_external_response(
        {"type": "create_entry", "flow_id": "ha-1", "title": "Hue", "data": {"host": "h"}}
    )
    assert entry == {"type": "create_entry", "title": "Hue", "data": {"host": "h"}}

    aborted = map_external_response(
        {"type": "abort", "flow_id": "ha-1", "reason": "already_configured"}
    )
    assert aborted == {"type": "abort", "reason": "already_configured"}


def test_unknown_result_type_is_an_upstream_error():
    """Result types without a mapping are rejected."""
    with pytest.raises(UpstreamError):
        map_external_response({"type": "dance", "flow_id": "ha-1"})


async def test_proxy_forwards_input_to_the_external_flow(hub_client):
    """Input goes to the external flow recorded in the context."""
    hub_client.handle_config_flow_step.return_value = {
        "type": "form",
        "flow_id": "ha-1",
        "step_id": "link",
        "data_schema": [],
    }
    handler = _proxy(hub_client, {"ha_flow_id": "ha-1"})

    result = await handler.async_step("user", {"host": "10.0.0.2"})
    hub_client.handle_config_flow_step.assert_awaited_once_with("ha-1", {"host": "10.0.0.2"})
    hub_client.start_config_flow.assert_not_awaited()
    assert result["step_id"] == "link"
    assert handler.flow.context == {"ha_flow_id": "ha-1"}


async def test_proxy_cannot_restart_without_input(hub_client):
    """Re-entering a running external flow without input aborts."""
    result = await _proxy(hub_client, {"ha_flow_id": "ha-1"}).async_step("user")
    assert result == {"type": "abort", "reason": "proxy_restart_unsupported"}


async def test_expired_external_flow_aborts(hub_client):
    """An external flow Home Assistant no longer knows aborts the local flow."""
    hub_client.handle_config_flow_step.side_effect = HAFlowNotFoundError(
        "Flow not found: /api/config/config_entries/flow/ha-1"
    )
    handler = _proxy(hub_client, {"ha_flow_id": "ha-1"})

    result = await handler.async_step("user", {"host": "h"})
    assert result["type"] == "abort"
    assert "Flow not found" in result["reason"]
    assert "ha_flow_id" not in handler.flow.context


async def test_cleanup_aborts_the_external_flow(hub_client):
    """Cleanup deletes the external flow once."""
    handler = _proxy(hub_client, {"ha_flow_id": "ha-1"})
    await handler.async_cleanup()
    await handler.async_cleanup()
    hub_client.abort_config_flow.assert_awaited_once_with("ha-1")
