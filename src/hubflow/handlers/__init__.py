"""Config flow handlers."""
from .base import (
    FlowHandler,
    FlowServices,
    abort,
    create_entry,
    device_options,
    external_step,
    show_form,
    show_menu,
)
from .definition import DefinitionFlowHandler
from .esphome import ESPHomeFlowHandler
from .ha_proxy import HAProxyFlowHandler, map_external_response
from .homekit_controller import HomeKitControllerFlowHandler
from .mqtt import MQTTFlowHandler
from .oauth import OAuth2FlowHandler
from .sonos import SonosFlowHandler
from .zigbee import ZigbeeFlowHandler
from .zwave import ZWaveFlowHandler

__all__ = [
    "DefinitionFlowHandler",
    "ESPHomeFlowHandler",
    "FlowHandler",
    "FlowServices",
    "HAProxyFlowHandler",
    "HomeKitControllerFlowHandler",
    "MQTTFlowHandler",
    "OAuth2FlowHandler",
    "SonosFlowHandler",
    "ZWaveFlowHandler",
    "ZigbeeFlowHandler",
    "abort",
    "create_entry",
    "device_options",
    "external_step",
    "map_external_response",
    "show_form",
    "show_menu",
]
