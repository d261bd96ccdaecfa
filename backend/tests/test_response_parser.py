from __future__ import annotations

import json

import pytest

from mindclear.core.errors import MALFORMED_JSON, SCHEMA_VIOLATION, ResponseSchemaError
from mindclear.services.response_parser import (
    ALIGNMENT_SUFFIX,
    ensure_alignment_question,
    extract_confidence_indicators,
    parse_decision_response,
    validate_decision_structure,
)


def _raw(**overrides) -> str:
    payload = {
        "decision": "  Focus on the API migration  ",
        "reasoning": "It unblocks two teams",
        "tasks": [{"title": "Draft the migration plan", "priority": 1}],
    }
    payload.update(overrides)
    return json.dumps(payload)


def test_parse_trims_and_appends_alignment_question() -> None:
    decision = parse_decision_response(_raw())

    assert decision.decision == "Focus on the API migration"
    assert decision.reasoning == f"It unblocks two teams. {ALIGNMENT_SUFFIX}"
    assert decision.confidence_score is None


def test_priorities_are_renumbered_densely() -> None:
    decision = parse_decision_response(
        _raw(
            tasks=[
                {"title": "Third", "priority": 30},
                {"title": "First", "priority": 2},
                {"title": "Second", "priority": 7.5},
            ]
        )
    )

    assert [(task.title, task.priority) for task in decision.tasks] == [("First", 1), ("Second", 2), ("Third", 3)]


def test_priority_ties_keep_original_order() -> None:
    decision = parse_decision_response(
        _raw(
            tasks=[
                {"title": "A", "priority": 2},
                {"title": "B", "priority": 1},
                {"title": "C", "priority": 2},
            ]
        )
    )

    assert [task.title for task in decision.tasks] == ["B", "A", "C"]
    assert [task.priority for task in decision.tasks] == [1, 2, 3]


def test_six_tasks_is_a_schema_violation() -> None:
    tasks = [{"title": f"Task {i}", "priority": i} for i in range(1, 7)]

    with pytest.raises(ResponseSchemaError) as excinfo:
        parse_decision_response(_raw(tasks=tasks))

    assert excinfo.value.code == SCHEMA_VIOLATION
    assert "Maximum 5 tasks allowed" in excinfo.value.errors


def test_malformed_json_is_reported() -> None:
    with pytest.raises(ResponseSchemaError) as excinfo:
        parse_decision_response("not json {")

    assert excinfo.value.code == MALFORMED_JSON
    assert excinfo.value.status_code == 502


def test_validate_collects_field_level_errors() -> None:
    errors = validate_decision_structure(
        {
            "reasoning": "   ",
            "tasks": [{"title": "", "priority": 1}, {"title": "Ok", "priority": 0}, {"title": "Flag", "priority": True}],
        }
    )

    assert errors == [
        'Missing or invalid "decision" field',
        'Missing or invalid "reasoning" field',
        'Task 1: missing or invalid "title"',
        'Task 2: missing or invalid "priority"',
        'Task 3: missing or invalid "priority"',
    ]


def test_empty_tasks_and_non_object_payloads() -> None:
    assert validate_decision_structure({"decision": "x", "reasoning": "y", "tasks": []}) == [
        'Missing or empty "tasks" array'
    ]
    assert validate_decision_structure(["not", "an", "object"]) == ["Response must be a JSON object"]


@pytest.mark.parametrize(
    "reasoning, expected",
    [
        ("Focus on X", f"Focus on X. {ALIGNMENT_SUFFIX}"),
        ("Ship it!", f"Ship it. {ALIGNMENT_SUFFIX}"),
        ("Is this right?", f"Is this right. {ALIGNMENT_SUFFIX}"),
        (f"Done. {ALIGNMENT_SUFFIX}", f"Done. {ALIGNMENT_SUFFIX}"),
    ],
)
def test_ensure_alignment_question(reasoning: str, expected: str) -> None:
    assert ensure_alignment_question(reasoning) == expected


def test_confidence_indicators_are_clamped() -> None:
    assert extract_confidence_indicators("This is clearly the right move") == pytest.approx(0.75)
    assert extract_confidence_indicators("maybe perhaps possibly it might or could work") == pytest.approx(0.2)
    assert extract_confidence_indicators("plain statement") == pytest.approx(0.7)
