"""Async client for the Home Assistant config flow REST API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ..constants import DEFAULT_HA_TIMEOUT
from ..exceptions import UpstreamError

logger = logging.getLogger("__main__")

FLOW_PATH = "/api/config/config_entries/flow"


class HAConnectionError(UpstreamError):
    """Error connecting to Home Assistant."""
    pass


class HAFlowNotFoundError(UpstreamError):
    """Home Assistant does not know the flow (expired or already finished)."""
    pass


class HAFlowApiClient:
    """Async client driving Home Assistant's own config flows."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        access_token: str,
        timeout: float = DEFAULT_HA_TIMEOUT,
    ) -> None:
        """Initialize the Home Assistant flow API client.

        Args:
            session: aiohttp ClientSession for making requests
            base_url: Base URL of Home Assistant (e.g., http://homeassistant:8123)
            access_token: Long-lived access token
            timeout: Total timeout per request in seconds
        """
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("[HA-FLOW] %s %s", method, url)
        try:
            async with self.session.request(
                method,
                url,
                json=payload,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status == 404:
                    raise HAFlowNotFoundError(f"Flow not found: {path}")
                if resp.status >= 400:
                    text = await resp.text()
                    raise HAConnectionError(
                        f"Home Assistant returned status {resp.status}: {text}"
                    )
                return await resp.json()

        except aiohttp.ClientError as err:
            raise HAConnectionError(f"Connection error: {err}") from err
        except asyncio.TimeoutError as err:
            raise HAConnectionError("Connection timeout") from err

    async def validate_connection(self) -> dict[str, Any]:
        """Check that the API is reachable and the token is accepted.

        Returns:
            The API status response

        Raises:
            HAConnectionError: If Home Assistant is unreachable or rejects the token
        """
        return await self._request("GET", "/api/")

    async def start_config_flow(
        self, domain: str, show_advanced_options: bool = False
    ) -> dict[str, Any]:
        """Start a config flow for `domain` on Home Assistant.

        Args:
            domain: Integration domain (the handler)
            show_advanced_options: Ask Home Assistant for advanced fields

        Returns:
            The first flow result, including its `flow_id`
        """
        result = await self._request(
            "POST",
            FLOW_PATH,
            {"handler": domain, "show_advanced_options": show_advanced_options},
        )
        logger.info(
            "[HA-FLOW] Started external flow %s for %s", result.get("flow_id"), domain
        )
        return result

    async def handle_config_flow_step(
        self, flow_id: str, user_input: dict[str, Any] | None
    ) -> dict[str, Any]:
        """Submit input to a step of an external flow.

        Returns:
            The next flow result

        Raises:
            HAFlowNotFoundError: If the external flow no longer exists
            HAConnectionError: On any other failure
        """
        return await self._request("POST", f"{FLOW_PATH}/{flow_id}", user_input or {})

    async def abort_config_flow(self, flow_id: str) -> bool:
        """Abort an external flow. Failures are logged, not raised.

        Returns:
            True if Home Assistant confirmed the abort
        """
        try:
            await self._request("DELETE", f"{FLOW_PATH}/{flow_id}")
        except UpstreamError as err:
            logger.warning("[HA-FLOW] Could not abort external flow %s: %s", flow_id, err)
            return False
        return True

    async def get_flows_in_progress(self) -> list[dict[str, Any]]:
        """List Home Assistant's in-progress flows, including discovered ones."""
        result = await self._request("GET", FLOW_PATH)
        return result if isinstance(result, list) else []
