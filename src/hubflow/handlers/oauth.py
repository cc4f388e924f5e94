"""OAuth2 authorization code flow, suspended on an external step."""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from ..constants import ABORT_INVALID_STATE, HANDLER_KIND_OAUTH
from ..exceptions import NotFound
from .base import FlowHandler, abort, create_entry, external_step

logger = logging.getLogger("__main__")

STEP_AUTH = "auth"


class OAuth2FlowHandler(FlowHandler):
    """Sends the user to the provider's authorize page.

    The provider redirects back with `code` and `state`; the caller submits them with
    `advance_flow`, which completes the flow. The flow id doubles as the OAuth state.
    Exchanging the code for tokens is left to the integration owning the entry.
    """

    handler_kind = HANDLER_KIND_OAUTH

    def _oauth_settings(self) -> dict[str, Any]:
        return self.services.settings.get("oauth") or {}

    def _provider(self) -> dict[str, Any]:
        provider = (self._oauth_settings().get("providers") or {}).get(self.domain)
        if not provider:
            raise NotFound(f"No OAuth provider configured for {self.domain}")
        return provider

    def _redirect_uri(self, provider: dict[str, Any]) -> str:
        return provider.get("redirect_uri") or self._oauth_settings().get("redirect_uri", "")

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is not None:
            return await self.async_step_auth(user_input)

        provider = self._provider()
        query = {
            "response_type": "code",
            "client_id": provider.get("client_id", ""),
            "redirect_uri": self._redirect_uri(provider),
            "state": self.flow.id,
        }
        if provider.get("scopes"):
            query["scope"] = " ".join(provider["scopes"])
        return external_step(
            step_id=STEP_AUTH, url=f"{provider['authorize_url']}?{urlencode(query)}"
        )

    async def async_step_auth(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if not user_input:
            return await self.async_step_user()
        if user_input.get("error"):
            return abort(reason=user_input["error"])
        if user_input.get("state") != self.flow.id:
            logger.warning(
                "[FLOW] OAuth state mismatch for %s",
                self.domain,
                extra={"flow_id": self.flow.id},
            )
            return abort(reason=ABORT_INVALID_STATE)
        if not user_input.get("code"):
            return abort(reason="missing_code")

        provider = self._provider()
        return create_entry(
            title=provider.get("name", self.domain),
            data={
                "auth_implementation": self.domain,
                "code": user_input["code"],
                "redirect_uri": self._redirect_uri(provider),
            },
        )
