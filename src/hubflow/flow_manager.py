"""
This module provides the `FlowManager` class, the state machine behind every config flow.

A flow starts `in_progress` and ends `completed` (a config entry was created) or
`aborted`. Each call runs exactly one handler step under the flow's lock and persists the
outcome. Input for a form is validated against the schema of the form that was shown
before it reaches the handler; invalid input re-shows the form with errors. Any other
exception from a handler ends the flow with an `abort` result whose reason is the
exception message.
"""
from __future__ import annotations

import logging
from typing import Any

from .constants import (
    ABORT_INVALID_FLOW_RESULT,
    CONTEXT_DEFINITION_VERSION,
    FLOW_STATUS_ABORTED,
    FLOW_STATUS_COMPLETED,
    FLOW_STATUS_IN_PROGRESS,
    HANDLER_KIND_MANUAL,
    HANDLER_KIND_PROXY,
    MENU_FIELD,
    RESULT_TYPE_ABORT,
    RESULT_TYPE_CREATE_ENTRY,
    RESULT_TYPE_FORM,
    RESULT_TYPE_MENU,
    RESULT_TYPES,
    STEP_CONFIRM,
)
from .definition_store import FlowDefinitionStore
from .exceptions import FlowTerminated, ValidationError
from .flow_store import MemoryFlowStore
from .handlers import DefinitionFlowHandler, FlowServices, abort, show_form, show_menu
from .models import FlowInstance
from .schema_validation import validate_step_input
from .step_resolver import StepResolver

logger = logging.getLogger("__main__")
logger.info("[FLOW] loading module ")


class FlowManager:
    """Starts, advances and finishes config flows."""

    def __init__(
        self,
        registry,
        flow_store=None,
        definition_store: FlowDefinitionStore | None = None,
        discovery=None,
        hub_client=None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the flow manager.

        Args:
            registry: FlowHandlerRegistry resolving domains to handler factories
            flow_store: Persistence for flow instances, in memory by default
            definition_store: Versioned flow definitions
            discovery: DiscoveryInterface used by discovery handlers
            hub_client: HAFlowApiClient used by the proxy handler
            settings: Application config (discovery timeouts, oauth providers)
        """
        self.registry = registry
        self.flow_store = flow_store if flow_store is not None else MemoryFlowStore()
        self.definition_store = (
            definition_store if definition_store is not None else FlowDefinitionStore()
        )
        self.services = FlowServices(
            discovery=discovery,
            hub_client=hub_client,
            definitions=self.definition_store,
            settings=settings or {},
        )
        self.step_resolver = StepResolver(self.flow_store, self.definition_store)

    # handler selection

    def _select_factory(self, domain: str):
        if self.registry.is_registered(domain):
            return self.registry.resolve(domain)
        if self.definition_store.get_flow_definition(domain) is not None:
            return DefinitionFlowHandler
        return self.registry.resolve(domain)

    def _build_handler(self, flow: FlowInstance):
        if CONTEXT_DEFINITION_VERSION in flow.context:
            factory = DefinitionFlowHandler
        elif flow.handler_kind == HANDLER_KIND_PROXY:
            factory = self.registry.proxy_factory
        else:
            factory = self.registry.resolve(flow.integration_domain)
        return factory(flow, self.services)

    # public operations

    async def start_flow(
        self, domain: str, context: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Start a config flow for `domain` and return its first step result.

        Raises:
            NotFound: If the handler for the domain cannot be set up
        """
        factory = self._select_factory(domain)
        flow = FlowInstance.create(domain, HANDLER_KIND_MANUAL, context)
        handler = factory(flow, self.services)
        flow.handler_kind = handler.handler_kind
        flow.current_step_id = handler.initial_step
        await self.flow_store.create(flow)
        logger.info(
            "[FLOW] Started %s flow for %s",
            flow.handler_kind,
            domain,
            extra={"flow_id": flow.id},
        )

        async with self.flow_store.lock(flow.id):
            result = await self._run_step(flow, handler, flow.current_step_id, None)
            await self.flow_store.update(flow)
        return result

    async def advance_flow(
        self, flow_id: str, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Submit input to the current step of a flow and return the next result.

        Raises:
            NotFound: If the flow does not exist
            FlowTerminated: If the flow already completed or aborted
        """
        async with self.flow_store.lock(flow_id):
            flow = await self._load_in_progress(flow_id)
            return await self._advance(flow, user_input)

    async def confirm_flow(
        self, flow_id: str, final_fields: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Finish a flow waiting at its `confirm` step.

        A flow at any other step gets its pending step back with a `base` error.
        """
        async with self.flow_store.lock(flow_id):
            flow = await self._load_in_progress(flow_id)
            if flow.current_step_id != STEP_CONFIRM:
                logger.warning(
                    "[FLOW] Confirm requested at step %s",
                    flow.current_step_id,
                    extra={"flow_id": flow.id},
                )
                result = self._reshow(flow, {"base": "not_ready_to_confirm"})
                flow.touch()
                await self.flow_store.update(flow)
                return result
            return await self._advance(flow, final_fields or {})

    async def get_next_step(
        self, flow_id: str, step_id: str, step_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Preview the step following `step_id` for a definition-driven flow."""
        return await self.step_resolver.get_next_step(flow_id, step_id, step_data)

    async def resolve_step_component(
        self, flow_id: str, step_id: str, flow_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self.step_resolver.resolve_step_component(flow_id, step_id, flow_data)

    async def get_flow(self, flow_id: str) -> FlowInstance:
        return await self.flow_store.get(flow_id)

    async def async_progress(self) -> list[dict[str, Any]]:
        """Summaries of all in-progress flows."""
        flows = await self.flow_store.list_flows(FLOW_STATUS_IN_PROGRESS)
        return [flow.summary() for flow in flows]

    # internals

    async def _load_in_progress(self, flow_id: str) -> FlowInstance:
        flow = await self.flow_store.get(flow_id)
        if flow.is_terminal:
            raise FlowTerminated(flow.id, flow.status)
        return flow

    async def _advance(
        self, flow: FlowInstance, user_input: dict[str, Any] | None
    ) -> dict[str, Any]:
        try:
            handler = self._build_handler(flow)
        except Exception as err:  # pylint: disable=broad-exception-caught
            logger.error(
                "[FLOW] No handler for %s: %s",
                flow.integration_domain,
                err,
                extra={"flow_id": flow.id},
            )
            result = abort(str(err) or type(err).__name__)
            self._apply_result(flow, flow.current_step_id, result)
            await self.flow_store.update(flow)
            return self._client_result(flow, result)

        pending = flow.pending or {}

        try:
            user_input = self._validate_input(flow, user_input)
        except ValidationError as err:
            logger.info(
                "[FLOW] Invalid input at %s: %s",
                flow.current_step_id,
                err,
                extra={"flow_id": flow.id},
            )
            result = self._reshow(flow, err.errors)
            flow.touch()
            await self.flow_store.update(flow)
            return result

        if pending.get("type") == RESULT_TYPE_MENU:
            step_id, step_input = user_input[MENU_FIELD], None
        else:
            flow.merge_data(user_input)
            step_id, step_input = flow.current_step_id, user_input

        result = await self._run_step(flow, handler, step_id, step_input)
        await self.flow_store.update(flow)
        return result

    def _validate_input(
        self, flow: FlowInstance, user_input: dict[str, Any] | None
    ) -> dict[str, Any]:
        pending = flow.pending or {}
        if pending.get("type") == RESULT_TYPE_FORM:
            return validate_step_input(pending.get("data_schema") or {}, user_input, flow.data)
        if pending.get("type") == RESULT_TYPE_MENU:
            choice = (user_input or {}).get(MENU_FIELD)
            if choice not in list(pending.get("menu_options") or []):
                raise ValidationError({MENU_FIELD: "invalid_option"})
            return {MENU_FIELD: choice}
        return dict(user_input or {})

    def _reshow(self, flow: FlowInstance, errors: dict[str, str]) -> dict[str, Any]:
        pending = flow.pending or {}
        if pending.get("type") == RESULT_TYPE_MENU:
            result = show_menu(flow.current_step_id, pending.get("menu_options") or [])
            result["errors"] = errors
        else:
            result = show_form(
                flow.current_step_id, pending.get("data_schema"), errors=errors
            )
        return self._client_result(flow, result)

    async def _run_step(
        self,
        flow: FlowInstance,
        handler,
        step_id: str,
        user_input: dict[str, Any] | None,
    ) -> dict[str, Any]:
        try:
            result = await handler.async_step(step_id, user_input)
        except ValidationError as err:
            logger.info(
                "[FLOW] Step %s rejected input: %s", step_id, err, extra={"flow_id": flow.id}
            )
            result = show_form(
                step_id, (flow.pending or {}).get("data_schema"), errors=err.errors
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            logger.error(
                "[FLOW] Step %s of %s failed: %s",
                step_id,
                flow.integration_domain,
                err,
                extra={"flow_id": flow.id},
            )
            try:
                await handler.async_cleanup()
            except Exception as cleanup_err:  # pylint: disable=broad-exception-caught
                logger.error(
                    "[FLOW] Cleanup after failed step %s failed: %s",
                    step_id,
                    cleanup_err,
                    extra={"flow_id": flow.id},
                )
            result = abort(str(err) or type(err).__name__)

        if not isinstance(result, dict) or result.get("type") not in RESULT_TYPES:
            logger.error(
                "[FLOW] Step %s returned an invalid result: %s",
                step_id,
                result,
                extra={"flow_id": flow.id},
            )
            result = abort(ABORT_INVALID_FLOW_RESULT)

        self._apply_result(flow, step_id, result)
        return self._client_result(flow, result)

    def _apply_result(
        self, flow: FlowInstance, step_id: str, result: dict[str, Any]
    ) -> None:
        flow.history.append(step_id)
        result_type = result["type"]

        if result_type == RESULT_TYPE_CREATE_ENTRY:
            flow.status = FLOW_STATUS_COMPLETED
            flow.result = {"title": result.get("title"), "data": result.get("data")}
            flow.pending = None
            logger.info(
                "[FLOW] Completed: created entry '%s'",
                result.get("title"),
                extra={"flow_id": flow.id},
            )
        elif result_type == RESULT_TYPE_ABORT:
            flow.status = FLOW_STATUS_ABORTED
            flow.result = {"reason": result.get("reason")}
            flow.pending = None
            logger.info(
                "[FLOW] Aborted: %s", result.get("reason"), extra={"flow_id": flow.id}
            )
        else:
            flow.current_step_id = result["step_id"]
            flow.pending = {"type": result_type}
            if result_type == RESULT_TYPE_FORM:
                flow.pending["data_schema"] = result.get("data_schema") or {}
            elif result_type == RESULT_TYPE_MENU:
                flow.pending["menu_options"] = result.get("menu_options")
        flow.touch()

    def _client_result(self, flow: FlowInstance, result: dict[str, Any]) -> dict[str, Any]:
        return {**result, "flow_id": flow.id, "handler": flow.integration_domain}
