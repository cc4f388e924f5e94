"""
This module provides the `StepResolver` class, which tells a UI what to render for a
definition-driven flow: the visible fields of a step and where the step sits in the flow.

Nothing is cached; visibility is recomputed from the flow data on every call.
"""

import logging

from .conditional_engine import determine_next_step, get_visible_schema, get_visible_steps
from .constants import CONTEXT_DEFINITION_VERSION, STEP_ID_PREFIXES
from .exceptions import FlowTerminated, NotFound

logger = logging.getLogger("__main__")


def normalize_step_id(step_id):
    """
    Strip the component prefixes a UI adds to step ids (`wizard_step_user` -> `user`).
    """
    for prefix in STEP_ID_PREFIXES:
        if step_id.startswith(prefix):
            return step_id[len(prefix):]
    return step_id


class StepResolver:
    """
    Resolves step components and next steps against the definition a flow runs on.
    """

    def __init__(self, flow_store, definition_store):
        self.flow_store = flow_store
        self.definition_store = definition_store

    def _definition_for(self, flow):
        version = flow.context.get(CONTEXT_DEFINITION_VERSION)
        definition = self.definition_store.get_flow_definition(
            flow.integration_domain, version
        )
        if definition is None:
            raise NotFound(f"No flow definition for {flow.integration_domain}")
        return definition

    def _resolve(self, definition, step_id, flow_data):
        step = definition.get_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id} not found in {definition.name}")

        visible_steps = get_visible_steps(definition, flow_data)
        if step_id in visible_steps:
            step_number = visible_steps.index(step_id) + 1
        else:
            step_number = definition.step_ids.index(step_id) + 1

        return {
            "step_id": step.step_id,
            "title": step.title,
            "description": step.description,
            "data_schema": get_visible_schema(step.schema, flow_data),
            "step_number": step_number,
            "total_steps": len(visible_steps),
            "is_last_step": determine_next_step(definition, step_id, flow_data) is None,
            "can_go_back": step_number > 1,
        }

    async def resolve_step_component(self, flow_id, step_id, flow_data=None):
        """
        Describe `step_id` of a flow's definition with only its visible fields.

        Args:
            flow_id (str): Flow to resolve against.
            step_id (str): Step id, optionally carrying a UI component prefix.
            flow_data (dict): Data to evaluate conditions on. Defaults to the flow's
                accumulated data.

        Raises:
            NotFound: If the flow, its definition or the step does not exist.
        """
        flow = await self.flow_store.get(flow_id)
        definition = self._definition_for(flow)
        data = flow.data if flow_data is None else flow_data
        return self._resolve(definition, normalize_step_id(step_id), data)

    async def get_next_step(self, flow_id, step_id, step_data=None):
        """
        Work out which step follows `step_id` if `step_data` were submitted. The data is
        only merged for the calculation, nothing is persisted.

        Returns:
            dict: `next_step_id` and `flow_complete`, plus the resolved `step` when there
            is a next step.
        """
        flow = await self.flow_store.get(flow_id)
        if flow.is_terminal:
            raise FlowTerminated(flow.id, flow.status)
        definition = self._definition_for(flow)
        current_step_id = normalize_step_id(step_id)
        if definition.get_step(current_step_id) is None:
            raise NotFound(f"Step {current_step_id} not found in {definition.name}")

        merged = {**flow.data, **(step_data or {})}
        next_step_id = determine_next_step(definition, current_step_id, merged)
        logger.debug(
            "[FLOW] Next step after %s: %s",
            current_step_id,
            next_step_id,
            extra={"flow_id": flow.id},
        )
        if next_step_id is None:
            return {"next_step_id": None, "flow_complete": True}
        return {
            "next_step_id": next_step_id,
            "flow_complete": False,
            "step": self._resolve(definition, next_step_id, merged),
        }
