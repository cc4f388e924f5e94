"""Tests for the OAuth2 authorization code flow."""
from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from hubflow.flow_manager import FlowManager
from hubflow.flow_store import MemoryFlowStore
from hubflow.registry import FlowHandlerRegistry, register_builtin_handlers

OAUTH_SETTINGS = {
    "oauth": {
        "redirect_uri": "https://hub.local/auth/callback",
        "providers": {
            "spotify": {
                "name": "Spotify",
                "authorize_url": "https://accounts.spotify.com/authorize",
                "client_id": "client-123",
                "scopes": ["user-read-playback-state", "user-modify-playback-state"],
            }
        },
    }
}


@pytest.fixture(name="oauth_manager")
def fixture_oauth_manager():
    """Flow manager with spotify registered as an OAuth domain."""
    registry = register_builtin_handlers(
        FlowHandlerRegistry(), oauth_domains=["spotify", "netatmo"]
    )
    return FlowManager(registry, flow_store=MemoryFlowStore(), settings=OAUTH_SETTINGS)


async def test_start_points_to_authorize_url(oauth_manager):
    """The flow suspends on an external step with the flow id as state."""
    result = await oauth_manager.start_flow("spotify")
    assert result["type"] == "external_step"
    assert result["step_id"] == "auth"

    url = urlparse(result["url"])
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://accounts.spotify.com/authorize"
    query = parse_qs(url.query)
    assert query["state"] == [result["flow_id"]]
    assert query["client_id"] == ["client-123"]
    assert query["redirect_uri"] == ["https://hub.local/auth/callback"]
    assert query["scope"] == ["user-read-playback-state user-modify-playback-state"]

    flow = await oauth_manager.get_flow(result["flow_id"])
    assert flow.handler_kind == "oauth"


async def test_callback_creates_entry(oauth_manager):
    """A callback with the right state finishes the flow."""
    result = await oauth_manager.start_flow("spotify")
    flow_id = result["flow_id"]

    result = await oauth_manager.advance_flow(flow_id, {"code": "abc", "state": flow_id})
    assert result["type"] == "create_entry"
    assert result["title"] == "Spotify"
    assert result["data"] == {
        "auth_implementation": "spotify",
        "code": "abc",
        "redirect_uri": "https://hub.local/auth/callback",
    }


async def test_state_mismatch_aborts(oauth_manager):
    """A callback for another flow is rejected."""
    result = await oauth_manager.start_flow("spotify")
    result = await oauth_manager.advance_flow(
        result["flow_id"], {"code": "abc", "state": "someone-else"}
    )
    assert result["type"] == "abort"
    assert result["reason"] == "invalid_state"


async def test_provider_error_aborts(oauth_manager):
    """Errors reported by the provider end the flow."""
    result = await oauth_manager.start_flow("spotify")
    result = await oauth_manager.advance_flow(
        result["flow_id"], {"error": "access_denied", "state": result["flow_id"]}
    )
    assert result["reason"] == "access_denied"


async def test_unconfigured_provider_aborts(oauth_manager):
    """A domain registered for OAuth but without provider settings aborts."""
    result = await oauth_manager.start_flow("netatmo")
    assert result["type"] == "abort"
    assert result["reason"] == "No OAuth provider configured for netatmo"
