"""Exceptions raised by the config flow engine."""
from __future__ import annotations

from typing import Any


class FlowError(Exception):
    """Base error for the config flow engine."""
    pass


class NotFound(FlowError):
    """Unknown flow, definition, step or handler."""
    pass


class FlowTerminated(NotFound):
    """Flow has already completed or aborted."""

    def __init__(self, flow_id: str, status: str) -> None:
        super().__init__(f"Flow {flow_id} is {status}")
        self.flow_id = flow_id
        self.status = status


class ValidationError(FlowError):
    """Submitted input failed validation against the step schema."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(
            ", ".join(f"{field}: {message}" for field, message in errors.items())
        )
        self.errors = errors


class UpstreamError(FlowError):
    """Discovery collaborator or external hub call failed."""
    pass


class DefinitionError(FlowError):
    """Flow definition is malformed."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(
            "; ".join(error.get("message", "") for error in errors)
            or "Invalid flow definition"
        )
        self.errors = errors
