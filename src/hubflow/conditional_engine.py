"""
This module evaluates the conditional logic of flow definitions.

Field conditionals decide which fields of a step schema are visible for the data collected
so far. Step conditions decide which steps are skipped and which step comes next. Both are
pure functions of the schema or definition and the accumulated flow data.

An unknown operator makes a field visible (fail-open) but never satisfies a step
condition, so a malformed transition cannot route the flow anywhere unexpected.
"""

import logging

from .constants import FIELD_OPERATORS

logger = logging.getLogger("__main__")

_MISSING = object()


def _to_number(value):
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _contains(field_value, compare_value):
    if isinstance(field_value, (list, tuple, set)):
        return compare_value in field_value
    if isinstance(compare_value, (list, tuple, set)):
        return field_value in compare_value
    if field_value is None or field_value is _MISSING:
        field_value = ""
    return str(compare_value) in str(field_value)


def _compare(operator, field_value, compare_value):
    """Apply a comparison operator. Returns None for an unknown operator."""
    if operator == "equals":
        return field_value == compare_value
    if operator == "not_equals":
        return field_value != compare_value
    if operator == "contains":
        return _contains(field_value, compare_value)
    if operator in ("greater_than", "less_than"):
        left = _to_number(field_value)
        right = _to_number(compare_value)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    if operator == "in":
        return isinstance(compare_value, (list, tuple, set)) and field_value in compare_value
    if operator == "not_in":
        if not isinstance(compare_value, (list, tuple, set)):
            return True
        return field_value not in compare_value
    if operator == "exists":
        return field_value is not None and field_value is not _MISSING
    if operator == "not_exists":
        return field_value is None or field_value is _MISSING
    return None


# field conditionals


def evaluate_condition(conditional, form_data):
    """Evaluate a field conditional against the collected data."""
    if not conditional:
        return True
    operator = conditional.get("operator")
    if operator not in FIELD_OPERATORS:
        logger.warning("[CONDITIONS] Unknown field operator '%s', showing field", operator)
        return True
    field_value = form_data.get(conditional.get("field"))
    return bool(_compare(operator, field_value, conditional.get("value")))


def should_show_field(field_schema, form_data):
    return evaluate_condition(field_schema.get("conditional"), form_data)


def get_visible_fields(schema, form_data):
    """Return the names of the visible fields, in schema order."""
    return [
        name
        for name, field_schema in schema.items()
        if should_show_field(field_schema, form_data)
    ]


def get_visible_schema(schema, form_data):
    """Return the sub-schema of visible fields, in schema order."""
    return {
        name: field_schema
        for name, field_schema in schema.items()
        if should_show_field(field_schema, form_data)
    }


def get_field_dependencies(field_schema):
    """Direct dependencies of a field: its conditional field and `depends_on` entries."""
    dependencies = []
    conditional = field_schema.get("conditional") or {}
    if conditional.get("field"):
        dependencies.append(conditional["field"])
    for dependency in field_schema.get("depends_on") or []:
        if dependency not in dependencies:
            dependencies.append(dependency)
    return dependencies


def get_field_dependency_chain(field_name, schema):
    """Transitive dependencies of a field, nearest first.

    The walk keeps a visited set, so it terminates on cyclic schemas and returns the
    chain collected up to the cycle.
    """
    chain = []
    visited = {field_name}

    def _walk(name):
        field_schema = schema.get(name)
        if not field_schema:
            return
        for dependency in get_field_dependencies(field_schema):
            if dependency in visited:
                continue
            visited.add(dependency)
            chain.append(dependency)
            _walk(dependency)

    _walk(field_name)
    return chain


def find_dependency_cycle(schema):
    """Return one dependency cycle as a list of field names, or None."""
    state = {}
    path = []

    def _visit(name):
        state[name] = "visiting"
        path.append(name)
        field_schema = schema.get(name) or {}
        for dependency in get_field_dependencies(field_schema):
            if dependency not in schema:
                continue
            if state.get(dependency) == "visiting":
                return path[path.index(dependency):] + [dependency]
            if dependency not in state:
                cycle = _visit(dependency)
                if cycle:
                    return cycle
        path.pop()
        state[name] = "done"
        return None

    for name in schema:
        if name not in state:
            cycle = _visit(name)
            if cycle:
                return cycle
    return None


# step conditions


def _lookup_path(data, path):
    value = data
    for part in str(path).split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _step_condition_value(condition, flow_data):
    depends_on = condition.get("depends_on")
    field_name = condition.get("field")
    if depends_on and field_name:
        # depends_on names a step whose data may be nested under its id
        step_data = flow_data.get(depends_on)
        if isinstance(step_data, dict):
            return step_data.get(field_name, _MISSING)
        return flow_data.get(field_name, _MISSING)
    return _lookup_path(flow_data, depends_on or field_name)


def evaluate_step_condition(condition, flow_data):
    """Evaluate a step condition, including nested `and` / `or` groups."""
    nested = condition.get("conditions")
    if nested:
        results = [evaluate_step_condition(item, flow_data) for item in nested]
        if condition.get("logic") == "or":
            return any(results)
        return all(results)

    value = _step_condition_value(condition, flow_data)
    result = _compare(condition.get("operator"), value, condition.get("value"))
    if result is None:
        logger.warning(
            "[CONDITIONS] Unknown step operator '%s', condition not met",
            condition.get("operator"),
        )
        return False
    return result


def should_skip_step(step, flow_data):
    if not step.condition:
        return False
    return not evaluate_step_condition(step.condition, flow_data)


def determine_next_step(definition, current_step_id, flow_data):
    """Pick the step that follows `current_step_id`.

    Transition rules are checked in order, then the explicit `next_step`, then the next
    step in definition order whose condition holds. Returns None when the graph is
    exhausted or the current step is unknown.
    """
    step_ids = definition.step_ids
    if current_step_id not in step_ids:
        return None
    current_step = definition.steps[current_step_id]

    for rule in current_step.transitions:
        condition = rule.get("condition")
        if condition is None or evaluate_step_condition(condition, flow_data):
            return rule.get("next_step")

    if current_step.next_step:
        return current_step.next_step

    for step_id in step_ids[step_ids.index(current_step_id) + 1:]:
        if not should_skip_step(definition.steps[step_id], flow_data):
            return step_id
    return None


def get_visible_steps(definition, flow_data):
    return [
        step_id
        for step_id, step in definition.steps.items()
        if not should_skip_step(step, flow_data)
    ]
