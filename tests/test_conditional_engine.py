"""Tests for the conditional field and step engine."""

import pytest

from hubflow.conditional_engine import (
    determine_next_step,
    evaluate_condition,
    evaluate_step_condition,
    find_dependency_cycle,
    get_field_dependencies,
    get_field_dependency_chain,
    get_visible_fields,
    get_visible_steps,
    should_skip_step,
)
from hubflow.models import FlowDefinition, steps_from_definition

MODE_MANUAL = {"field": "mode", "operator": "equals", "value": "manual"}


def _definition(steps):
    return FlowDefinition(
        id="def-1",
        integration_domain="test",
        version=1,
        name="Test",
        steps=steps_from_definition(steps),
    )


@pytest.mark.parametrize(
    "form_data, expected",
    [
        ({"mode": "manual"}, True),
        ({"mode": "auto"}, False),
        ({}, False),
    ],
)
def test_equals_condition(form_data, expected):
    """The equals operator matches only the exact value."""
    assert evaluate_condition(MODE_MANUAL, form_data) is expected


@pytest.mark.parametrize(
    "operator, field_value, value, expected",
    [
        ("not_equals", "a", "b", True),
        ("not_equals", "a", "a", False),
        ("contains", "living room", "room", True),
        ("contains", ["a", "b"], "b", True),
        ("contains", ["a", "b"], "c", False),
        ("contains", None, "x", False),
        ("greater_than", "10", 5, True),
        ("greater_than", 3, 5, False),
        ("greater_than", "abc", 5, False),
        ("less_than", 3, "5", True),
        ("in", "b", ["a", "b"], True),
        ("in", "c", ["a", "b"], False),
        ("in", "a", "a", False),
        ("not_in", "c", ["a", "b"], True),
        ("not_in", "a", ["a", "b"], False),
        ("not_in", "a", "a", True),
    ],
)
def test_field_operators(operator, field_value, value, expected):
    """Each comparison operator follows its documented semantics."""
    conditional = {"field": "x", "operator": operator, "value": value}
    assert evaluate_condition(conditional, {"x": field_value}) is expected


def test_unknown_field_operator_shows_field():
    """Field visibility fails open on an unknown operator."""
    conditional = {"field": "x", "operator": "matches", "value": "y"}
    assert evaluate_condition(conditional, {}) is True


def test_get_visible_fields_keeps_schema_order():
    """Visible fields come back in schema order and repeated calls agree."""
    schema = {
        "mode": {"type": "select"},
        "host": {"type": "string", "conditional": MODE_MANUAL},
        "port": {"type": "number"},
    }
    assert get_visible_fields(schema, {"mode": "auto"}) == ["mode", "port"]
    first = get_visible_fields(schema, {"mode": "manual"})
    assert first == ["mode", "host", "port"]
    assert get_visible_fields(schema, {"mode": "manual"}) == first


def test_field_dependencies_include_conditional_and_depends_on():
    """Direct dependencies combine the conditional field and depends_on."""
    field_schema = {"conditional": MODE_MANUAL, "depends_on": ["mode", "host"]}
    assert get_field_dependencies(field_schema) == ["mode", "host"]


def test_dependency_chain_is_transitive():
    """The chain follows dependencies of dependencies."""
    schema = {
        "a": {"type": "string"},
        "b": {"type": "string", "depends_on": ["a"]},
        "c": {"type": "string", "conditional": {"field": "b", "operator": "equals"}},
    }
    assert get_field_dependency_chain("c", schema) == ["b", "a"]


def test_dependency_chain_terminates_on_cycle():
    """A <-> B cycles yield a finite chain."""
    schema = {
        "a": {"type": "string", "depends_on": ["b"]},
        "b": {"type": "string", "depends_on": ["a"]},
    }
    assert get_field_dependency_chain("a", schema) == ["b"]
    assert find_dependency_cycle(schema) == ["a", "b", "a"]


def test_find_dependency_cycle_none_for_acyclic_schema():
    """Acyclic schemas have no cycle."""
    schema = {"a": {"type": "string"}, "b": {"type": "string", "depends_on": ["a"]}}
    assert find_dependency_cycle(schema) is None


def test_step_condition_nested_logic():
    """Nested groups combine with and / or."""
    condition = {
        "logic": "or",
        "conditions": [
            {"field": "mode", "operator": "equals", "value": "manual"},
            {
                "conditions": [
                    {"field": "host", "operator": "exists"},
                    {"field": "port", "operator": "greater_than", "value": 1000},
                ]
            },
        ],
    }
    assert evaluate_step_condition(condition, {"mode": "manual"})
    assert evaluate_step_condition(condition, {"host": "h", "port": 8080})
    assert not evaluate_step_condition(condition, {"host": "h", "port": 80})


def test_step_condition_paths():
    """Step conditions can read nested step data and dotted paths."""
    data = {"connection": {"mode": "cloud"}, "flat": 1}
    assert evaluate_step_condition(
        {"depends_on": "connection", "field": "mode", "operator": "equals", "value": "cloud"},
        data,
    )
    assert evaluate_step_condition(
        {"field": "connection.mode", "operator": "equals", "value": "cloud"}, data
    )
    assert evaluate_step_condition({"field": "missing", "operator": "not_exists"}, data)


def test_unknown_step_operator_is_not_met():
    """Step conditions fail closed on an unknown operator."""
    assert not evaluate_step_condition({"field": "x", "operator": "matches"}, {"x": 1})


def test_determine_next_step_skips_conditional_steps():
    """Steps whose condition does not hold are skipped."""
    definition = _definition(
        [
            {"step_id": "user"},
            {"step_id": "credentials", "condition": MODE_MANUAL},
            {"step_id": "options"},
        ]
    )
    assert determine_next_step(definition, "user", {"mode": "manual"}) == "credentials"
    assert determine_next_step(definition, "user", {"mode": "auto"}) == "options"
    assert determine_next_step(definition, "options", {}) is None
    assert determine_next_step(definition, "unknown", {}) is None
    assert should_skip_step(definition.steps["credentials"], {"mode": "auto"})
    assert get_visible_steps(definition, {"mode": "auto"}) == ["user", "options"]


def test_determine_next_step_prefers_transitions_then_next_step():
    """Transition rules win over next_step, which wins over definition order."""
    definition = _definition(
        [
            {
                "step_id": "user",
                "transitions": [{"next_step": "cloud", "condition": MODE_MANUAL}],
                "next_step": "finish",
            },
            {"step_id": "cloud"},
            {"step_id": "finish"},
        ]
    )
    assert determine_next_step(definition, "user", {"mode": "manual"}) == "cloud"
    assert determine_next_step(definition, "user", {"mode": "auto"}) == "finish"
