"""Trigger condition evaluation.

Pure predicates over a pair of state snapshots (current, previous).  A
trigger's conditions are AND-ed together and an empty list never fires.

States come in two shapes and field access tolerates both:

- flat:   ``{"status": "In Progress", "assignee": "ana"}``
- nested: ``{"fields": {"status": {"name": "In Progress"}}}``

The flat field is read first; when it is missing the nested
``fields.<field>.name`` is used.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from workshop.template_runtime.execution.paths import get_path
from workshop.template_runtime.models.enums import ConditionType
from workshop.template_runtime.models.trigger import TriggerCondition

State = Mapping[str, Any]


def read_field(state: State | None, field: str) -> Any:
    """Read *field* from a flat or nested (``fields.<field>.name``) state."""
    if not state:
        return None
    value = state.get(field)
    if value is None:
        value = get_path(state, f"fields.{field}.name")
    return value


def _changed(
    current: State,
    previous: State | None,
    field: str,
    *,
    expected_from: str | None = None,
    expected_to: str | None = None,
) -> bool:
    now = read_field(current, field)
    before = read_field(previous, field)
    if now == before:
        return False
    if expected_from is not None and before != expected_from:
        return False
    return expected_to is None or now == expected_to


def _comment_count(state: State | None) -> int:
    comments = state.get("comments") if state else None
    if comments is None:
        comments = get_path(state, "fields.comment.comments")
    return len(comments) if isinstance(comments, Sequence) and not isinstance(comments, str) else 0


def _string_match(condition: TriggerCondition, current: State) -> bool:
    config = condition.config
    if not config.search_string:
        return False

    if config.field_path:
        target = get_path(current, config.field_path)
        if target is None:
            return False
        text = target if isinstance(target, str) else json.dumps(target, default=str)
    else:
        text = json.dumps(current, default=str)

    if config.case_sensitive:
        return config.search_string in text
    return config.search_string.lower() in text.lower()


def evaluate_condition(condition: TriggerCondition, current: State, previous: State | None) -> bool:
    """Evaluate one condition against the (current, previous) snapshot pair."""
    config = condition.config
    match condition.type:
        case ConditionType.STATUS_CHANGE:
            return _changed(current, previous, "status", expected_from=config.from_status, expected_to=config.to_status)
        case ConditionType.NEW_COMMENT:
            return _comment_count(current) > _comment_count(previous)
        case ConditionType.ASSIGNEE_CHANGE:
            return _changed(current, previous, "assignee", expected_to=config.new_assignee)
        case ConditionType.PRIORITY_CHANGE:
            return _changed(
                current, previous, "priority", expected_from=config.from_priority, expected_to=config.to_priority
            )
        case ConditionType.STRING_MATCH:
            return _string_match(condition, current)
    logger.warning("Unknown condition type: {}", condition.type)
    return False


def evaluate_conditions(
    conditions: Sequence[TriggerCondition],
    current: State,
    previous: State | None,
) -> bool:
    """AND all conditions together; an empty condition list is never satisfied."""
    if not conditions:
        return False
    return all(evaluate_condition(c, current, previous) for c in conditions)
