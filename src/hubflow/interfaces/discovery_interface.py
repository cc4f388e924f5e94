"""
This module provides the `DiscoveryInterface` class, which finds devices on the network for
config flows that offer discovered devices before falling back to manual entry.

Discovery providers are registered per protocol (`zigbee`, `sonos`, `mqtt`, ...). When no
provider is registered for a protocol the `homeassistant` provider is asked instead, which
reports the devices Home Assistant itself has discovered but not yet configured.
Results are cached per protocol and config for a short time, so repeated renders of the
same step do not trigger a new network scan.
"""

import json
import logging
import time

from ..constants import DEFAULT_DISCOVERY_CACHE_TTL, DISCOVERY_PROVIDER_HOMEASSISTANT
from ..exceptions import UpstreamError
from ..models import DiscoveredDevice

logger = logging.getLogger("__main__")
logger.info("[DISCOVERY] loading module ")


class DiscoveryProvider:
    """
    Base class of a protocol specific discovery provider.
    """

    async def is_available(self):
        return True

    async def discover(self, protocol, config=None):
        """
        Return the devices found for `protocol` as a list of `DiscoveredDevice`.
        """
        raise NotImplementedError


class HADiscoveryProvider(DiscoveryProvider):
    """
    Reports devices Home Assistant discovered on its own (zeroconf, ssdp, usb, ...).
    Every discovered, not yet configured device shows up in Home Assistant as an
    in-progress config flow whose source is not `user`.
    """

    def __init__(self, client):
        self.client = client

    async def is_available(self):
        try:
            await self.client.validate_connection()
        except UpstreamError as err:
            logger.debug("[DISCOVERY] Home Assistant not available: %s", err)
            return False
        return True

    async def discover(self, protocol, config=None):
        flows = await self.client.get_flows_in_progress()
        devices = []
        for flow in flows:
            context = flow.get("context") or {}
            source = context.get("source", "")
            if source == "user":
                continue
            if protocol not in (flow.get("handler"), source):
                continue
            placeholders = context.get("title_placeholders") or {}
            identifiers = {
                "flow_id": flow.get("flow_id"),
                "handler": flow.get("handler"),
                "source": source,
            }
            if placeholders.get("host"):
                identifiers["host"] = placeholders["host"]
            devices.append(
                DiscoveredDevice(
                    id=context.get("unique_id") or flow.get("flow_id"),
                    name=placeholders.get("name") or flow.get("handler", ""),
                    protocol=source or protocol,
                    identifiers=identifiers,
                    model=placeholders.get("model"),
                )
            )
        logger.debug(
            "[DISCOVERY] Home Assistant reports %s device(s) for %s", len(devices), protocol
        )
        return devices


class DiscoveryInterface:
    """
    Coordinates the discovery providers and caches their results.
    """

    def __init__(self, cache_ttl=DEFAULT_DISCOVERY_CACHE_TTL):
        self.cache_ttl = cache_ttl
        self.providers = {}
        self._cache = {}

    def register_provider(self, protocol, provider):
        self.providers[protocol] = provider
        logger.debug("[DISCOVERY] Registered provider for %s", protocol)

    def _provider_for(self, protocol):
        return self.providers.get(protocol) or self.providers.get(
            DISCOVERY_PROVIDER_HOMEASSISTANT
        )

    async def is_available(self):
        """
        True if at least one registered provider can currently discover devices.
        """
        for provider in self.providers.values():
            if await provider.is_available():
                return True
        return False

    async def discover(self, protocol, config=None):
        """
        Discover devices for `protocol`.

        Returns:
            list: `DiscoveredDevice` values, de-duplicated by id. Empty when no provider
            serves the protocol or the provider is unavailable.

        Raises:
            UpstreamError: If the provider fails.
        """
        cache_key = (protocol, json.dumps(config or {}, sort_keys=True, default=str))
        cached = self._cache.get(cache_key)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            return list(cached[1])

        provider = self._provider_for(protocol)
        if provider is None:
            logger.debug("[DISCOVERY] No provider for %s", protocol)
            return []
        if not await provider.is_available():
            logger.info("[DISCOVERY] Provider for %s is not available", protocol)
            return []

        try:
            found = await provider.discover(protocol, config)
        except UpstreamError:
            raise
        except Exception as err:
            raise UpstreamError(f"Discovery via {protocol} failed: {err}") from err

        devices = []
        seen = set()
        for device in found:
            if device.id in seen:
                continue
            seen.add(device.id)
            devices.append(device)

        self._cache[cache_key] = (time.monotonic(), devices)
        logger.info("[DISCOVERY] Found %s device(s) via %s", len(devices), protocol)
        return list(devices)

    async def refresh(self, protocol, config=None):
        """
        Drop the cached result for `protocol` and discover again.
        """
        cache_key = (protocol, json.dumps(config or {}, sort_keys=True, default=str))
        self._cache.pop(cache_key, None)
        return await self.discover(protocol, config)

    def clear_cache(self):
        self._cache.clear()
