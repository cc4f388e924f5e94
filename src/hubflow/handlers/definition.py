"""
Handler driven by a stored flow definition.

Each definition step is rendered as a form; after a submission the conditional engine
picks the next step. When the step graph is exhausted the flow parks at the `confirm`
step, and submitting it creates the config entry.
"""
from __future__ import annotations

import logging
from typing import Any

from ..conditional_engine import determine_next_step
from ..constants import CONTEXT_DEFINITION_VERSION, HANDLER_KIND_WIZARD, STEP_CONFIRM
from ..exceptions import NotFound
from ..models import FlowDefinition, StepDefinition
from .base import FlowHandler, FlowServices, create_entry, show_form

logger = logging.getLogger("__main__")


class DefinitionFlowHandler(FlowHandler):
    """Runs the active flow definition of the flow's domain.

    The definition version is pinned in the flow context when the flow starts, so
    activating a newer version does not change flows already in progress.
    """

    handler_kind = HANDLER_KIND_WIZARD

    def __init__(self, flow, services: FlowServices | None = None) -> None:
        super().__init__(flow, services)
        self.definition = self._load_definition()
        self.handler_kind = self.definition.flow_type

    def _load_definition(self) -> FlowDefinition:
        store = self.services.definitions
        if store is None:
            raise NotFound("No flow definition store configured")
        version = self.flow.context.get(CONTEXT_DEFINITION_VERSION)
        definition = store.get_flow_definition(self.domain, version)
        if definition is None:
            raise NotFound(f"No flow definition for {self.domain}")
        self.flow.context[CONTEXT_DEFINITION_VERSION] = definition.version
        return definition

    @property
    def initial_step(self) -> str | None:
        return self.definition.first_step_id

    def _show_step(self, step: StepDefinition) -> dict[str, Any]:
        placeholders = {"title": step.title} if step.title else None
        return show_form(
            step_id=step.step_id,
            data_schema=step.schema,
            description_placeholders=placeholders,
        )

    async def async_step(
        self, step_id: str, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if step_id == STEP_CONFIRM:
            return await self.async_step_confirm(user_input)

        step = self.definition.get_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id} not found in {self.definition.name}")
        if user_input is None:
            return self._show_step(step)

        next_step_id = determine_next_step(self.definition, step_id, self.flow.data)
        logger.debug(
            "[FLOW] %s: %s -> %s",
            self.domain,
            step_id,
            next_step_id or STEP_CONFIRM,
            extra={"flow_id": self.flow.id},
        )
        if next_step_id is None:
            return await self.async_step_confirm()
        return self._show_step(self.definition.steps[next_step_id])

    async def async_step_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if user_input is None:
            return show_form(
                step_id=STEP_CONFIRM,
                data_schema={
                    "title": {
                        "type": "string",
                        "label": "Name",
                        "required": False,
                        "default": self.definition.name,
                    }
                },
                description_placeholders={"name": self.definition.name},
            )
        data = {key: value for key, value in self.flow.data.items() if key != "title"}
        return create_entry(
            title=self.flow.data.get("title") or self.definition.name, data=data
        )
