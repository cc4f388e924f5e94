"""
This module provides the `FlowHandlerRegistry`, which maps integration domains to the
handler factories that run their config flows.

Domains without a registered handler resolve to the Home Assistant proxy handler, so
every domain Home Assistant knows can be set up even without a local implementation.
"""

import logging

from .handlers import (
    ESPHomeFlowHandler,
    HAProxyFlowHandler,
    HomeKitControllerFlowHandler,
    MQTTFlowHandler,
    OAuth2FlowHandler,
    SonosFlowHandler,
    ZigbeeFlowHandler,
    ZWaveFlowHandler,
)

logger = logging.getLogger("__main__")

BUILTIN_HANDLERS = {
    "esphome": ESPHomeFlowHandler,
    "homekit_controller": HomeKitControllerFlowHandler,
    "mqtt": MQTTFlowHandler,
    "sonos": SonosFlowHandler,
    "zigbee": ZigbeeFlowHandler,
    "zwave": ZWaveFlowHandler,
}


class FlowHandlerRegistry:
    """
    Domain to handler factory mapping. A factory is called with the flow instance and
    the flow services and returns a handler; handler classes are factories.
    """

    def __init__(self, proxy_factory=HAProxyFlowHandler):
        self.proxy_factory = proxy_factory
        self._factories = {}

    def register(self, domain, factory):
        """
        Register the handler factory for `domain`. The last registration wins.
        """
        if domain in self._factories and self._factories[domain] is not factory:
            logger.debug("[REGISTRY] Replacing handler for %s", domain)
        self._factories[domain] = factory

    def unregister(self, domain):
        self._factories.pop(domain, None)

    def is_registered(self, domain):
        return domain in self._factories

    def resolve(self, domain):
        """
        Return the factory for `domain`, falling back to the proxy factory.
        """
        factory = self._factories.get(domain)
        if factory is None:
            logger.debug("[REGISTRY] No handler for %s, using proxy", domain)
            return self.proxy_factory
        return factory

    def domains(self):
        return sorted(self._factories)


def register_builtin_handlers(registry, oauth_domains=()):
    """
    Register the built-in integration handlers, plus the OAuth2 handler for every
    domain that has an OAuth provider configured. Called once at process start.
    """
    for domain, factory in BUILTIN_HANDLERS.items():
        registry.register(domain, factory)
    for domain in oauth_domains:
        registry.register(domain, OAuth2FlowHandler)
    logger.info("[REGISTRY] Registered handlers: %s", ", ".join(registry.domains()))
    return registry
