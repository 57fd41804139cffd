"""
Notification feed for task events.

On every task create, update and delete one notification is written per
recipient. Recipients are the assignee, the owner (when it is not also the
assignee) and, for group tasks, every member of the group; each user is
notified at most once per event.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from schemas import Notification

logger = logging.getLogger(__name__)

FEED_LIMIT = 30

ASSIGNMENT = "assignment"
UPDATE = "update"
DELETED = "deleted"


def resolve_recipients(task: dict, groups) -> List[str]:
    recipients: List[str] = []

    def add(user_id):
        if user_id and user_id not in recipients:
            recipients.append(user_id)

    assigned_to = task.get("assigned_to")
    owner = task.get("owner")
    add(assigned_to)
    if owner and owner != assigned_to:
        add(owner)

    if task.get("visibility") == "group" and task.get("group"):
        group = groups.get(task["group"])
        if group is None:
            logger.warning("Task %s references missing group %s", task.get("id"), task["group"])
        else:
            for member in group.get("members", []):
                add(member)
    return recipients


def build_message(kind: str, task: dict, actor_name: str, assignee_name: Optional[str] = None) -> str:
    title = task.get("title") or "a task"
    if kind == ASSIGNMENT:
        return f'{actor_name} created a task "{title}" for {assignee_name or "someone"}.'
    if kind == UPDATE:
        return f'{actor_name} updated the task "{title}".'
    if kind == DELETED:
        return f'{actor_name} deleted the task "{title}".'
    raise ValueError(f"unknown notification kind: {kind!r}")


def _name_of(users, user_id) -> Optional[str]:
    if not user_id:
        return None
    user = users.get(user_id)
    return user.get("name") if user else None


def notify(users, groups, notifications, task: dict, kind: str, actor_id: str,
           now: Optional[datetime] = None) -> List[Notification]:
    """Write one unread notification per recipient of a task event."""
    actor_name = _name_of(users, actor_id) or "Someone"
    assignee_name = _name_of(users, task.get("assigned_to")) if kind == ASSIGNMENT else None
    message = build_message(kind, task, actor_name, assignee_name)

    created_at = now or datetime.now(timezone.utc)
    batch = [
        Notification(user_id=user_id, task_id=task.get("id"), message=message, type=kind, created_at=created_at)
        for user_id in resolve_recipients(task, groups)
    ]
    notifications.insert_many(batch)
    logger.info("Sent %d %s notification(s) for task %s", len(batch), kind, task.get("id"))
    return batch


def list_feed(notifications, user_id: str) -> List[dict]:
    return notifications.list_for_user(user_id, FEED_LIMIT)


def mark_read(notifications, notification_id: str) -> None:
    # Unknown or already-read ids are a successful no-op.
    notifications.mark_read(notification_id)


def mark_all_read(notifications, user_id: str) -> int:
    return notifications.mark_all_read(user_id)
