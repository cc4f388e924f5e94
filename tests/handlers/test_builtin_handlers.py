"""Tests for the built-in discovery and manual entry handlers."""
from __future__ import annotations

import asyncio

from hubflow.handlers import (
    ESPHomeFlowHandler,
    FlowServices,
    MQTTFlowHandler,
    SonosFlowHandler,
    ZWaveFlowHandler,
    device_options,
)
from hubflow.interfaces.discovery_interface import DiscoveryInterface
from hubflow.models import FlowInstance

from conftest import FakeDiscoveryProvider, make_device


class SlowDiscoveryProvider(FakeDiscoveryProvider):
    """Provider that never answers in time."""

    async def discover(self, protocol, config=None):
        await asyncio.sleep(5)
        return []


def _handler(handler_class, domain, discovery=None, settings=None):
    flow = FlowInstance.create(domain, handler_class.handler_kind)
    return handler_class(flow, FlowServices(discovery=discovery, settings=settings or {}))


def test_device_options_prefers_identifier():
    """Options use the named identifier, falling back to the device id."""
    devices = [
        make_device("a", "Stick A", "usb", path="/dev/ttyACM0"),
        make_device("b", "Stick B", "usb"),
    ]
    assert device_options(devices, "path") == [
        {"label": "Stick A", "value": "/dev/ttyACM0"},
        {"label": "Stick B", "value": "b"},
    ]
    assert device_options(devices) == [
        {"label": "Stick A", "value": "a"},
        {"label": "Stick B", "value": "b"},
    ]


async def test_sonos_offers_discovered_speakers(discovery, discovery_provider):
    """Discovered speakers become a host select."""
    discovery_provider.devices = {
        "sonos": [make_device("RINCON_1", "Kitchen", "ssdp", host="10.0.0.7")]
    }
    result = await _handler(SonosFlowHandler, "sonos", discovery).async_step("user")

    host = result["data_schema"]["host"]
    assert host["type"] == "select"
    assert host["options"] == [{"label": "Kitchen", "value": "10.0.0.7"}]


async def test_zwave_manual_entry_defaults_to_local_server(flow_manager):
    """Without a stick the Z-Wave JS server URL is asked for."""
    result = await flow_manager.start_flow("zwave")
    assert result["data_schema"]["url"]["default"] == "ws://localhost:3000"
    assert "usb_path" not in result["data_schema"]

    result = await flow_manager.advance_flow(result["flow_id"], {})
    assert result["type"] == "create_entry"
    assert result["title"] == "Z-Wave JS"
    assert result["data"] == {"url": "ws://localhost:3000"}


async def test_zwave_offers_detected_stick(discovery, discovery_provider):
    """A detected stick is offered by its device path."""
    discovery_provider.devices = {
        "zwave": [make_device("zooz", "Zooz 800", "usb", path="/dev/ttyUSB1")]
    }
    result = await _handler(ZWaveFlowHandler, "zwave", discovery).async_step("user")
    assert result["data_schema"]["usb_path"]["options"] == [
        {"label": "Zooz 800", "value": "/dev/ttyUSB1"}
    ]
    assert "url" not in result["data_schema"]


async def test_esphome_manual_entry(flow_manager):
    """Manual ESPHome entry gets the default API port and a host based title."""
    result = await flow_manager.start_flow("esphome")
    assert result["data_schema"]["password"]["type"] == "password"

    result = await flow_manager.advance_flow(result["flow_id"], {"host": "10.0.0.9"})
    assert result["title"] == "ESPHome: 10.0.0.9"
    assert result["data"] == {"host": "10.0.0.9", "port": 6053}


async def test_esphome_discovered_node_uses_device_id(discovery, discovery_provider):
    """Discovered nodes are identified by their device id."""
    discovery_provider.devices = {
        "esphome": [make_device("garage-door", "Garage Door", "zeroconf")]
    }
    handler = _handler(ESPHomeFlowHandler, "esphome", discovery)
    result = await handler.async_step("user")
    assert result["data_schema"]["device_id"]["options"] == [
        {"label": "Garage Door", "value": "garage-door"}
    ]

    result = await handler.async_step("user", {"device_id": "garage-door"})
    assert result["title"] == "ESPHome: garage-door"


async def test_mqtt_keeps_manual_fields_next_to_discovered_brokers(
    discovery, discovery_provider
):
    """Picking a discovered broker is optional."""
    discovery_provider.devices = {"mqtt": [make_device("mosquitto", "Mosquitto", "mdns")]}
    result = await _handler(MQTTFlowHandler, "mqtt", discovery).async_step("user")

    schema = result["data_schema"]
    assert list(schema) == ["broker_id", "broker", "port", "username", "password"]
    assert schema["broker_id"]["required"] is False
    assert schema["port"]["default"] == 1883


async def test_mqtt_completes(flow_manager):
    """The broker form creates the MQTT entry."""
    result = await flow_manager.start_flow("mqtt")
    result = await flow_manager.advance_flow(
        result["flow_id"], {"broker": "core-mosquitto", "username": "ha"}
    )
    assert result["title"] == "MQTT Broker"
    assert result["data"] == {"broker": "core-mosquitto", "port": 1883, "username": "ha"}


async def test_discovery_timeout_falls_back_to_manual_entry():
    """A discovery that takes too long is treated as no devices found."""
    discovery = FakeDiscoveryProvider()
    slow = SlowDiscoveryProvider()
    interface = DiscoveryInterface(cache_ttl=0)
    interface.register_provider("sonos", slow)
    interface.register_provider("homeassistant", discovery)
    handler = _handler(
        SonosFlowHandler,
        "sonos",
        interface,
        settings={"discovery": {"timeout": 5, "timeouts": {"sonos": 0.01}}},
    )
    result = await handler.async_step("user")
    assert result["data_schema"]["host"]["type"] == "string"


async def test_no_discovery_interface_means_manual_entry():
    """Handlers work without discovery."""
    result = await _handler(SonosFlowHandler, "sonos").async_step("user")
    assert result["data_schema"]["host"] == {
        "type": "string",
        "label": "Host",
        "required": True,
    }
