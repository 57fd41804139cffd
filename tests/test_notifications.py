# tests/test_notifications.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend import notifications
from schemas import Notification


def test_recipients_dedupe_owner_who_is_assignee(repos) -> None:
    task = {"owner": "u-1", "assigned_to": "u-1", "visibility": "private"}
    assert notifications.resolve_recipients(task, repos.groups) == ["u-1"]


def test_recipients_include_owner_of_unassigned_task(repos) -> None:
    task = {"owner": "u-1", "assigned_to": None, "visibility": "public"}
    assert notifications.resolve_recipients(task, repos.groups) == ["u-1"]


def test_recipients_fan_out_to_group(repos, make_group) -> None:
    group = make_group("u-2", ["u-3", "u-4", "u-1"])
    task = {"owner": "u-2", "assigned_to": "u-1", "visibility": "group", "group": group["id"]}

    assert notifications.resolve_recipients(task, repos.groups) == ["u-1", "u-2", "u-3", "u-4"]


def test_recipients_ignore_group_of_non_group_task(repos, make_group) -> None:
    group = make_group("u-2", ["u-3"])
    task = {"owner": "u-2", "visibility": "public", "group": group["id"]}

    assert notifications.resolve_recipients(task, repos.groups) == ["u-2"]


def test_recipients_skip_missing_group(repos) -> None:
    task = {"id": "t", "owner": "u-2", "visibility": "group", "group": "gone"}
    assert notifications.resolve_recipients(task, repos.groups) == ["u-2"]


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        ("assignment", 'Alice created a task "Fix login" for Bob.'),
        ("update", 'Alice updated the task "Fix login".'),
        ("deleted", 'Alice deleted the task "Fix login".'),
    ],
)
def test_message_templates(kind: str, expected: str) -> None:
    assert notifications.build_message(kind, {"title": "Fix login"}, "Alice", "Bob") == expected


def test_message_defaults(repos) -> None:
    task = {"id": "t-1", "title": "", "owner": "ghost", "assigned_to": "nobody", "visibility": "private"}
    sent = notifications.notify(repos.users, repos.groups, repos.notifications, task, "assignment", "ghost")

    assert {n.message for n in sent} == {'Someone created a task "a task" for someone.'}


def test_create_fans_out_identical_notifications(client, repos, make_user, make_group) -> None:
    u1, u2, u3, u4 = (make_user(n) for n in ("Ann", "Ben", "Cat", "Dan"))
    group = make_group(u2.id, [u3.id, u4.id])

    resp = client.post(
        "/api/tasks",
        json={"title": "Plan sprint", "assigned_to": u1.id, "visibility": "group", "group": group["id"]},
        headers=u2.headers,
    )
    assert resp.status_code == 201
    task_id = resp.json()["id"]

    rows = [n for n in repos.notifications.list_all() if n["task_id"] == task_id]
    assert sorted(n["user_id"] for n in rows) == sorted([u1.id, u2.id, u3.id, u4.id])
    assert {n["message"] for n in rows} == {'Ben created a task "Plan sprint" for Ann.'}
    assert {n["type"] for n in rows} == {"assignment"}
    assert not any(n["read"] for n in rows)


def test_update_and_delete_notify(client, repos, make_user) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    task_id = client.post("/api/tasks", json={"title": "T", "assigned_to": bob.id}, headers=alice.headers).json()["id"]

    client.put(f"/api/tasks/{task_id}", json={"status": 3}, headers=bob.headers)
    client.delete(f"/api/tasks/{task_id}", headers=bob.headers)

    bob_feed = [n["message"] for n in repos.notifications.for_user(bob.id)]
    assert 'Bob updated the task "T".' in bob_feed
    assert 'Bob deleted the task "T".' in bob_feed
    assert len(repos.notifications.for_user(alice.id)) == 3


def _seed(repos, user_id: str, count: int) -> None:
    t0 = datetime(2026, 3, 1, tzinfo=timezone.utc)
    repos.notifications.insert_many([
        Notification(user_id=user_id, task_id=None, message=f"n{i}", type="update",
                     created_at=t0 + timedelta(minutes=i))
        for i in range(count)
    ])


def test_feed_returns_30_newest(client, repos, make_user) -> None:
    alice = make_user("Alice")
    _seed(repos, alice.id, 35)

    resp = client.get("/api/notifications", headers=alice.headers)

    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 30
    assert body[0]["message"] == "n34"
    assert body[-1]["message"] == "n5"


def test_mark_all_read_touches_only_caller(client, repos, make_user) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    _seed(repos, alice.id, 3)
    _seed(repos, bob.id, 2)

    resp = client.put("/api/notifications/mark-all-read", headers=alice.headers)

    assert resp.status_code == 200
    assert all(n["read"] for n in repos.notifications.for_user(alice.id))
    assert not any(n["read"] for n in repos.notifications.for_user(bob.id))


def test_mark_one_read_is_idempotent(client, repos, make_user) -> None:
    alice = make_user("Alice")
    _seed(repos, alice.id, 1)
    notification_id = repos.notifications.for_user(alice.id)[0]["id"]

    assert client.put(f"/api/notifications/{notification_id}/read").status_code == 204
    assert client.put(f"/api/notifications/{notification_id}/read").status_code == 204
    assert repos.notifications.get(notification_id)["read"] is True


def test_mark_unknown_notification_read_is_success(client) -> None:
    assert client.put("/api/notifications/does-not-exist/read").status_code == 204
