"""
Unit tests for the HAFlowApiClient class in ha_flow_client.py
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from hubflow.exceptions import UpstreamError
from hubflow.interfaces.ha_flow_client import (
    FLOW_PATH,
    HAConnectionError,
    HAFlowApiClient,
    HAFlowNotFoundError,
)


def _mock_aiohttp_response(status=200, json_data=None, text=""):
    """Async context manager standing in for `session.request(...)`."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


@pytest.fixture(name="session")
def fixture_session():
    """aiohttp session mock."""
    return MagicMock()


@pytest.fixture(name="client")
def fixture_client(session):
    """Client pointing at a local Home Assistant."""
    return HAFlowApiClient(session, "http://homeassistant:8123/", "token-1", timeout=5)


def test_client_init(client):
    """The base url loses its trailing slash and the token goes into the headers."""
    assert client.base_url == "http://homeassistant:8123"
    assert client.headers["Authorization"] == "Bearer token-1"


def test_exceptions_are_upstream_errors():
    assert issubclass(HAConnectionError, UpstreamError)
    assert issubclass(HAFlowNotFoundError, UpstreamError)


async def test_start_config_flow(client, session):
    """Starting a flow posts the handler to the flow endpoint."""
    session.request.return_value = _mock_aiohttp_response(
        json_data={"type": "form", "flow_id": "ha-1", "step_id": "user"}
    )
    result = await client.start_config_flow("hue")

    assert result["flow_id"] == "ha-1"
    args, kwargs = session.request.call_args
    assert args == ("POST", f"http://homeassistant:8123{FLOW_PATH}")
    assert kwargs["json"] == {"handler": "hue", "show_advanced_options": False}
    assert kwargs["timeout"].total == 5


async def test_handle_step_sends_empty_input(client, session):
    """Missing input is sent as an empty object."""
    session.request.return_value = _mock_aiohttp_response(json_data={"type": "abort"})
    await client.handle_config_flow_step("ha-1", None)

    args, kwargs = session.request.call_args
    assert args[1].endswith(f"{FLOW_PATH}/ha-1")
    assert kwargs["json"] == {}


async def test_unknown_flow_raises_not_found(client, session):
    """A 404 means Home Assistant no longer knows the flow."""
    session.request.return_value = _mock_aiohttp_response(status=404)
    with pytest.raises(HAFlowNotFoundError):
        await client.handle_config_flow_step("ha-1", {"host": "h"})


async def test_error_status_raises_connection_error(client, session):
    """Other error statuses carry the response text."""
    session.request.return_value = _mock_aiohttp_response(status=401, text="Unauthorized")
    with pytest.raises(HAConnectionError) as err:
        await client.validate_connection()
    assert "401" in str(err.value)
    assert "Unauthorized" in str(err.value)


async def test_client_errors_are_wrapped(client, session):
    """Network failures and timeouts become HAConnectionError."""
    session.request.side_effect = aiohttp.ClientConnectionError("refused")
    with pytest.raises(HAConnectionError) as err:
        await client.start_config_flow("hue")
    assert str(err.value).startswith("Connection error")

    session.request.side_effect = asyncio.TimeoutError()
    with pytest.raises(HAConnectionError, match="timeout"):
        await client.start_config_flow("hue")


async def test_abort_is_best_effort(client, session):
    """Aborting reports failure instead of raising."""
    session.request.return_value = _mock_aiohttp_response(json_data={"message": "ok"})
    assert await client.abort_config_flow("ha-1") is True
    assert session.request.call_args[0][0] == "DELETE"

    session.request.return_value = _mock_aiohttp_response(status=404)
    assert await client.abort_config_flow("ha-1") is False


async def test_flows_in_progress(client, session):
    """Anything but a list is treated as no flows."""
    session.request.return_value = _mock_aiohttp_response(json_data=[{"flow_id": "ha-2"}])
    assert await client.get_flows_in_progress() == [{"flow_id": "ha-2"}]

    session.request.return_value = _mock_aiohttp_response(json_data={"unexpected": True})
    assert await client.get_flows_in_progress() == []
