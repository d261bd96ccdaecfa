from __future__ import annotations

from uuid import uuid4

from mindclear.services.decision_store import save_decision
from mindclear.services.response_parser import Decision, DecisionTask


def _seed(session_factory, user_id=None):
    user_id = user_id or uuid4()
    decision = Decision(
        decision="Ship the beta",
        reasoning="Because testers are waiting. Are we aligned, or should we challenge this before moving on?",
        tasks=[DecisionTask(title=title, priority=n) for n, title in enumerate(["Tag", "Deploy", "Email"], start=1)],
    )
    with session_factory() as db:
        row = save_decision(db, user_id=user_id, user_input="What should I ship?", decision=decision)
        return user_id, row.id


def _tasks(test_client, decision_id):
    response = test_client.get(f"/task/decision/{decision_id}")
    assert response.status_code == 200
    return response.json()


def test_tasks_are_listed_in_priority_order(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)

    tasks = _tasks(test_client, decision_id)

    assert [(t["title"], t["priority"]) for t in tasks] == [("Tag", 1), ("Deploy", 2), ("Email", 3)]
    assert test_client.get(f"/task/{tasks[0]['id']}").json()["title"] == "Tag"


def test_update_status_and_pending_list(api) -> None:
    test_client, _, session_factory = api
    user_id, decision_id = _seed(session_factory)
    tasks = _tasks(test_client, decision_id)

    response = test_client.patch(f"/task/{tasks[0]['id']}/status", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    pending = test_client.get(f"/task/user/{user_id}/pending").json()
    assert [t["title"] for t in pending] == ["Deploy", "Email"]


def test_invalid_status_is_rejected(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)
    task_id = _tasks(test_client, decision_id)[0]["id"]

    response = test_client.patch(f"/task/{task_id}/status", json={"status": "done"})

    assert response.status_code == 422
    assert response.json()["error"]["details"]["errors"][0]["code"] == "INVALID_STATUS"


def test_priority_change_reorders_siblings(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)
    email_id = _tasks(test_client, decision_id)[2]["id"]

    response = test_client.patch(f"/task/{email_id}/priority", json={"priority": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["task"]["priority"] == 1
    assert [(t["title"], t["priority"]) for t in body["reordered_tasks"]] == [("Email", 1), ("Tag", 2), ("Deploy", 3)]
    assert [t["title"] for t in _tasks(test_client, decision_id)] == ["Email", "Tag", "Deploy"]


def test_priority_must_be_positive(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)
    task_id = _tasks(test_client, decision_id)[0]["id"]

    assert test_client.patch(f"/task/{task_id}/priority", json={"priority": 0}).status_code == 422


def test_delete_task(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)
    task_id = _tasks(test_client, decision_id)[0]["id"]

    response = test_client.delete(f"/task/{task_id}")

    assert response.status_code == 200
    assert response.json() == {"id": task_id, "deleted": True}
    assert test_client.get(f"/task/{task_id}").status_code == 404


def test_bulk_status_skips_unknown_ids(api) -> None:
    test_client, _, session_factory = api
    _, decision_id = _seed(session_factory)
    ids = [t["id"] for t in _tasks(test_client, decision_id)]

    response = test_client.post("/task/bulk-status", json={"task_ids": ids[:2] + [str(uuid4())], "status": "skipped"})

    assert response.status_code == 200
    assert response.json()["updated"] == 2
    assert {t["status"] for t in response.json()["tasks"]} == {"skipped"}


def test_bulk_status_requires_ids(api) -> None:
    test_client, _, _ = api

    response = test_client.post("/task/bulk-status", json={"task_ids": [], "status": "skipped"})

    assert response.status_code == 422
