# tests/test_groups_api.py

from __future__ import annotations


def test_creator_becomes_owner(client, make_user) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")

    resp = client.post("/api/groups", json={"name": "Platform", "members": [bob.id, bob.id]}, headers=alice.headers)

    assert resp.status_code == 201
    group = resp.json()
    assert group["owner"] == alice.id
    assert group["members"] == [bob.id]


def test_list_groups_returns_all(client, make_user, make_group) -> None:
    alice = make_user("Alice")
    make_group("someone", ["x"], name="A")
    make_group("other", [], name="B")

    resp = client.get("/api/groups", headers=alice.headers)

    assert resp.status_code == 200
    assert {g["name"] for g in resp.json()} == {"A", "B"}


def test_owner_can_rename_and_transfer(client, make_user, make_group) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = make_group(alice.id, [alice.id])

    resp = client.put(f"/api/groups/{group['id']}", json={"name": "Renamed", "members": [bob.id], "owner": bob.id},
                      headers=alice.headers)

    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["owner"] == bob.id

    # Former owner lost control.
    again = client.put(f"/api/groups/{group['id']}", json={"name": "Back"}, headers=alice.headers)
    assert again.status_code == 403


def test_non_owner_cannot_update(client, make_user, make_group) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = make_group(alice.id, [bob.id])

    resp = client.put(f"/api/groups/{group['id']}", json={"name": "Mine now"}, headers=bob.headers)

    assert resp.status_code == 403


def test_non_owner_delete_is_forbidden_and_changes_nothing(client, repos, make_user, make_group) -> None:
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = make_group(alice.id, [bob.id])
    task_id = client.post("/api/tasks", json={"title": "t", "visibility": "group", "group": group["id"]},
                          headers=alice.headers).json()["id"]

    resp = client.delete(f"/api/groups/{group['id']}", headers=bob.headers)

    assert resp.status_code == 403
    assert repos.groups.get(group["id"]) is not None
    assert repos.tasks.get(task_id) is not None


def test_owner_delete_cascades_to_group_tasks(client, repos, make_user, make_group) -> None:
    alice = make_user("Alice")
    group = make_group(alice.id, [alice.id])
    in_group = client.post("/api/tasks", json={"title": "g", "visibility": "group", "group": group["id"]},
                           headers=alice.headers).json()["id"]
    outside = client.post("/api/tasks", json={"title": "p"}, headers=alice.headers).json()["id"]

    resp = client.delete(f"/api/groups/{group['id']}", headers=alice.headers)

    assert resp.status_code == 200
    assert repos.groups.get(group["id"]) is None
    assert repos.tasks.get(in_group) is None
    assert repos.tasks.get(outside) is not None


def test_missing_group(client, make_user) -> None:
    alice = make_user("Alice")
    assert client.put("/api/groups/nope", json={"name": "x"}, headers=alice.headers).status_code == 404
    assert client.delete("/api/groups/nope", headers=alice.headers).status_code == 404


def test_groups_require_session(client) -> None:
    assert client.post("/api/groups", json={"name": "x"}).status_code == 401
