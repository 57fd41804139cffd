"""
Audit trail of task changes.

One append-only record per task create, update and delete. What goes into
`changes` depends on the action:

- create: the full created task
- update: only `title` and `group`, when their value differs from the stored
  value before the write; other edited fields are not tracked
- delete: a fixed snapshot of the task as it was
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from schemas import Audit

logger = logging.getLogger(__name__)

TRACKED_UPDATE_FIELDS = ("title", "group")

DELETE_SNAPSHOT_FIELDS = (
    "title",
    "description",
    "link",
    "tags",
    "visibility",
    "completed",
    "status",
    "group",
    "owner",
    "assigned_by",
    "assigned_to",
    "priority",
    "due_date",
    "linked_tasks",
)


def creation_changes(task: dict) -> dict:
    return dict(task)


def update_changes(before: dict, after: dict) -> dict:
    return {
        name: after.get(name)
        for name in TRACKED_UPDATE_FIELDS
        if before.get(name) != after.get(name)
    }


def deletion_snapshot(task: dict) -> dict:
    return {name: task.get(name) for name in DELETE_SNAPSHOT_FIELDS}


def record_audit(audits, task_id: str, action: str, changed_by: str, changes: dict,
                 now: Optional[datetime] = None) -> Audit:
    record = Audit(
        task_id=task_id,
        action=action,
        changed_by=changed_by,
        changes=changes,
        timestamp=now or datetime.now(timezone.utc),
    )
    audits.append(record)
    logger.debug("Recorded %s audit for task %s by %s", action, task_id, changed_by)
    return record


def get_audit_trail(audits, users, task_id: str) -> List[dict]:
    """Audit records of a task, newest first, with the name of whoever made each change."""
    names = {}
    trail = []
    for record in audits.list_for_task(task_id):
        user_id = record.get("changed_by")
        if user_id not in names:
            user = users.get(user_id) if user_id else None
            names[user_id] = user.get("name") if user else None
        trail.append({**record, "changed_by_name": names[user_id]})
    return trail
