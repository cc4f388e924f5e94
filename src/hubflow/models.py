"""
Data model of the config flow engine.

A `FlowInstance` is one in-progress setup session. A `FlowDefinition` is a versioned,
data-driven step graph for an integration domain, made of ordered `StepDefinition`
entries whose schemas map field names to plain field dicts:

    {"type": "select", "label": "Mode", "required": True, "default": "auto",
     "options": [{"label": "Auto", "value": "auto"}],
     "conditional": {"field": "other", "operator": "equals", "value": "x"},
     "depends_on": ["other"]}

`DiscoveredDevice` values are transient results of a discovery call.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
import uuid

import pytz

from .constants import (
    FLOW_STATUS_IN_PROGRESS,
    HANDLER_KIND_WIZARD,
    TERMINAL_FLOW_STATUSES,
)


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(pytz.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return utcnow()
    return datetime.fromisoformat(value)


def normalize_options(options: Any) -> list[dict[str, Any]]:
    """Normalize select options to a list of {"label", "value"} dicts.

    Accepts a list of strings, a list of [value, label] pairs, a list of option dicts
    or a value -> label mapping.
    """
    if not options:
        return []
    if isinstance(options, dict):
        return [{"label": str(label), "value": value} for value, label in options.items()]

    normalized = []
    for option in options:
        if isinstance(option, dict):
            value = option.get("value")
            normalized.append({"label": str(option.get("label", value)), "value": value})
        elif isinstance(option, (list, tuple)) and len(option) == 2:
            normalized.append({"label": str(option[1]), "value": option[0]})
        else:
            normalized.append({"label": str(option), "value": option})
    return normalized


@dataclass
class FlowInstance:
    """A single in-progress setup session."""

    id: str
    integration_domain: str
    handler_kind: str
    current_step_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    status: str = FLOW_STATUS_IN_PROGRESS
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    pending: dict[str, Any] | None = None
    history: list[str] = field(default_factory=list)
    result: dict[str, Any] | None = None

    @classmethod
    def create(
        cls, integration_domain: str, handler_kind: str, context: dict | None = None
    ) -> FlowInstance:
        """Create a new in-progress flow with a fresh opaque id."""
        return cls(
            id=uuid.uuid4().hex,
            integration_domain=integration_domain,
            handler_kind=handler_kind,
            context=dict(context or {}),
        )

    @property
    def is_terminal(self) -> bool:
        """Whether the flow has completed or aborted."""
        return self.status in TERMINAL_FLOW_STATUSES

    def merge_data(self, user_input: dict[str, Any] | None) -> None:
        """Merge submitted input into the accumulated data.

        Keys are added or overwritten, never removed.
        """
        if user_input:
            self.data.update(user_input)
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def summary(self) -> dict[str, Any]:
        """Client-facing view of the flow. Handler context is not included."""
        return {
            "flow_id": self.id,
            "handler": self.integration_domain,
            "handler_kind": self.handler_kind,
            "step_id": self.current_step_id,
            "status": self.status,
            "data": dict(self.data),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "integration_domain": self.integration_domain,
            "handler_kind": self.handler_kind,
            "current_step_id": self.current_step_id,
            "data": self.data,
            "context": self.context,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "pending": self.pending,
            "history": self.history,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowInstance:
        return cls(
            id=data["id"],
            integration_domain=data["integration_domain"],
            handler_kind=data["handler_kind"],
            current_step_id=data.get("current_step_id"),
            data=dict(data.get("data") or {}),
            context=dict(data.get("context") or {}),
            status=data.get("status", FLOW_STATUS_IN_PROGRESS),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            pending=data.get("pending"),
            history=list(data.get("history") or []),
            result=data.get("result"),
        )


@dataclass(frozen=True)
class StepDefinition:
    """One step of a flow definition."""

    step_id: str
    title: str = ""
    description: str = ""
    schema: dict[str, dict[str, Any]] = field(default_factory=dict)
    condition: dict[str, Any] | None = None
    transitions: tuple = ()
    next_step: str | None = None

    @classmethod
    def from_dict(cls, step_id: str, data: dict[str, Any]) -> StepDefinition:
        schema = {}
        for name, field_schema in (data.get("schema") or {}).items():
            field_schema = dict(field_schema)
            if "options" in field_schema:
                field_schema["options"] = normalize_options(field_schema["options"])
            schema[name] = field_schema
        return cls(
            step_id=step_id,
            title=data.get("title", ""),
            description=data.get("description", ""),
            schema=schema,
            condition=data.get("condition"),
            transitions=tuple(dict(rule) for rule in data.get("transitions") or ()),
            next_step=data.get("next_step"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "title": self.title,
            "description": self.description,
            "schema": self.schema,
            "condition": self.condition,
            "transitions": [dict(rule) for rule in self.transitions],
            "next_step": self.next_step,
        }


def steps_from_definition(steps: Any) -> dict[str, StepDefinition]:
    """Build the ordered step mapping from a list of step dicts or a mapping."""
    if isinstance(steps, dict):
        return {
            step_id: StepDefinition.from_dict(step_id, step or {})
            for step_id, step in steps.items()
        }
    return {
        step["step_id"]: StepDefinition.from_dict(step["step_id"], step)
        for step in steps or []
    }


@dataclass
class FlowDefinition:
    """A versioned step graph for one integration domain."""

    id: str
    integration_domain: str
    version: int
    name: str
    steps: dict[str, StepDefinition]
    flow_type: str = HANDLER_KIND_WIZARD
    description: str = ""
    initial_step: str | None = None
    is_active: bool = True
    is_default: bool = False
    created_by: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def step_ids(self) -> list[str]:
        return list(self.steps)

    @property
    def first_step_id(self) -> str | None:
        if self.initial_step:
            return self.initial_step
        return next(iter(self.steps), None)

    def get_step(self, step_id: str) -> StepDefinition | None:
        return self.steps.get(step_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "integration_domain": self.integration_domain,
            "version": self.version,
            "name": self.name,
            "flow_type": self.flow_type,
            "description": self.description,
            "initial_step": self.initial_step,
            "steps": [step.to_dict() for step in self.steps.values()],
            "is_active": self.is_active,
            "is_default": self.is_default,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class DiscoveredDevice:
    """A device found by a discovery provider."""

    id: str
    name: str
    protocol: str
    identifiers: dict[str, Any] = field(default_factory=dict)
    model: str | None = None
    manufacturer: str | None = None
    discovered_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "protocol": self.protocol,
            "identifiers": self.identifiers,
            "model": self.model,
            "manufacturer": self.manufacturer,
            "discovered_at": self.discovered_at.isoformat(),
        }
