"""Fixtures for hubflow tests."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from hubflow.definition_store import FlowDefinitionStore
from hubflow.flow_manager import FlowManager
from hubflow.flow_store import MemoryFlowStore
from hubflow.interfaces.discovery_interface import DiscoveryInterface, DiscoveryProvider
from hubflow.models import DiscoveredDevice
from hubflow.registry import FlowHandlerRegistry, register_builtin_handlers


class FakeDiscoveryProvider(DiscoveryProvider):
    """Discovery provider returning a fixed device list per protocol."""

    def __init__(self, devices=None, available=True):
        self.devices = devices or {}
        self.available = available
        self.calls = []

    async def is_available(self):
        return self.available

    async def discover(self, protocol, config=None):
        self.calls.append(protocol)
        return list(self.devices.get(protocol, []))


def make_device(device_id, name, protocol, **identifiers):
    """Build a discovered device."""
    return DiscoveredDevice(
        id=device_id, name=name, protocol=protocol, identifiers=identifiers
    )


WIZARD_DEFINITION = {
    "name": "Smart Light",
    "steps": [
        {
            "step_id": "user",
            "title": "Connection",
            "schema": {
                "mode": {
                    "type": "select",
                    "label": "Mode",
                    "required": True,
                    "options": ["auto", "manual"],
                },
                "host": {
                    "type": "string",
                    "label": "Host",
                    "required": True,
                    "conditional": {
                        "field": "mode",
                        "operator": "equals",
                        "value": "manual",
                    },
                },
            },
        },
        {
            "step_id": "credentials",
            "title": "Credentials",
            "condition": {"field": "mode", "operator": "equals", "value": "manual"},
            "schema": {
                "username": {"type": "string", "label": "Username", "required": True},
                "password": {"type": "password", "label": "Password"},
            },
        },
        {
            "step_id": "options",
            "title": "Options",
            "schema": {
                "brightness": {
                    "type": "number",
                    "label": "Brightness",
                    "default": 80,
                    "min": 0,
                    "max": 100,
                },
            },
        },
    ],
}


@pytest.fixture(name="discovery_provider")
def fixture_discovery_provider():
    """A discovery provider with no devices."""
    return FakeDiscoveryProvider()


@pytest.fixture(name="discovery")
def fixture_discovery(discovery_provider):
    """Discovery interface serving every protocol from the fake provider."""
    discovery = DiscoveryInterface(cache_ttl=0)
    discovery.register_provider("homeassistant", discovery_provider)
    return discovery


@pytest.fixture(name="registry")
def fixture_registry():
    """Registry with the built-in handlers."""
    return register_builtin_handlers(FlowHandlerRegistry())


@pytest.fixture(name="definition_store")
def fixture_definition_store():
    """Empty definition store."""
    return FlowDefinitionStore()


@pytest.fixture(name="hub_client")
def fixture_hub_client():
    """Mocked Home Assistant flow client."""
    client = MagicMock()
    client.start_config_flow = AsyncMock()
    client.handle_config_flow_step = AsyncMock()
    client.abort_config_flow = AsyncMock(return_value=True)
    client.get_flows_in_progress = AsyncMock(return_value=[])
    return client


@pytest.fixture(name="flow_manager")
def fixture_flow_manager(registry, definition_store, discovery, hub_client):
    """Flow manager backed by in-memory stores."""
    return FlowManager(
        registry,
        flow_store=MemoryFlowStore(),
        definition_store=definition_store,
        discovery=discovery,
        hub_client=hub_client,
        settings={"discovery": {"timeout": 1}},
    )
