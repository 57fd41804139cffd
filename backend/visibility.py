"""
Which tasks a user may read.

A task is visible to a user when the user owns it, assigned it, is its
assignee, when it is public, or when it is a group task of a group the user
is a member of. Group ownership alone does not grant visibility.

The same rule exists in two forms: `is_visible` evaluates it on a single
record, `visibility_query` expresses it as a MongoDB filter. Both are evaluated
on every read, nothing is cached between requests.
"""
from typing import Iterable, List


def is_visible(task: dict, user_id: str, member_group_ids: Iterable[str]) -> bool:
    if user_id in (task.get("owner"), task.get("assigned_by"), task.get("assigned_to")):
        return True
    visibility = task.get("visibility")
    if visibility == "public":
        return True
    if visibility == "group" and task.get("group"):
        return task["group"] in set(member_group_ids)
    return False


def visibility_query(user_id: str, member_group_ids: Iterable[str]) -> dict:
    return {
        "$or": [
            {"owner": user_id},
            {"assigned_by": user_id},
            {"assigned_to": user_id},
            {"visibility": "public"},
            {"visibility": "group", "group": {"$in": list(member_group_ids)}},
        ]
    }


def list_visible_tasks(tasks, groups, user_id: str) -> List[dict]:
    """Tasks readable by `user_id`, in no particular order."""
    member_group_ids = groups.ids_with_member(user_id)
    return tasks.list_visible(user_id, member_group_ids)
