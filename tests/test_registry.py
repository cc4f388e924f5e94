"""Tests for the flow handler registry."""

from hubflow.handlers import (
    HAProxyFlowHandler,
    OAuth2FlowHandler,
    SonosFlowHandler,
    ZigbeeFlowHandler,
)
from hubflow.registry import FlowHandlerRegistry, register_builtin_handlers


def test_unregistered_domain_resolves_to_proxy():
    """Every domain resolves, unknown ones to the proxy handler."""
    registry = FlowHandlerRegistry()
    assert registry.resolve("hue") is HAProxyFlowHandler
    assert not registry.is_registered("hue")


def test_last_registration_wins():
    """Registering a domain again replaces its factory."""
    registry = FlowHandlerRegistry()
    registry.register("sonos", SonosFlowHandler)
    registry.register("sonos", ZigbeeFlowHandler)
    assert registry.resolve("sonos") is ZigbeeFlowHandler

    registry.unregister("sonos")
    assert registry.resolve("sonos") is HAProxyFlowHandler


def test_register_builtin_handlers():
    """Built-in and OAuth handlers are registered once at start."""
    registry = register_builtin_handlers(FlowHandlerRegistry(), oauth_domains=["spotify"])
    assert registry.domains() == [
        "esphome",
        "homekit_controller",
        "mqtt",
        "sonos",
        "spotify",
        "zigbee",
        "zwave",
    ]
    assert registry.resolve("spotify") is OAuth2FlowHandler
    assert registry.resolve("zigbee") is ZigbeeFlowHandler
