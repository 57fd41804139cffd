"""
Store interfaces and their MongoDB implementations.

Every store hands back plain dicts with a string "id" in place of "_id", the
same shape the API serializes. Ids that are not valid ObjectIds are treated
as unknown records rather than errors.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from bson.errors import InvalidId
from bson.objectid import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from backend.visibility import visibility_query
from database import create_document, get_documents
from schemas import Audit, Group, Notification, Task, User


class UserRepository(Protocol):
    def get(self, user_id: str) -> Optional[dict]: ...
    def find_by_username(self, username: str) -> Optional[dict]: ...
    def find_by_reset_token(self, token: str, now: datetime) -> Optional[dict]: ...
    def create(self, user: User) -> str: ...
    def update(self, user_id: str, fields: dict) -> Optional[dict]: ...
    def list_all(self) -> List[dict]: ...


class GroupRepository(Protocol):
    def get(self, group_id: str) -> Optional[dict]: ...
    def list_all(self) -> List[dict]: ...
    def ids_with_member(self, user_id: str) -> List[str]: ...
    def create(self, group: Group) -> dict: ...
    def update(self, group_id: str, fields: dict) -> Optional[dict]: ...
    def delete(self, group_id: str) -> bool: ...


class TaskRepository(Protocol):
    def get(self, task_id: str) -> Optional[dict]: ...
    def list_visible(self, user_id: str, member_group_ids: Iterable[str]) -> List[dict]: ...
    def create(self, task: Task) -> dict: ...
    def update(self, task_id: str, fields: dict) -> Optional[dict]: ...
    def delete(self, task_id: str) -> bool: ...
    def delete_by_group(self, group_id: str) -> int: ...


class AuditRepository(Protocol):
    def append(self, record: Audit) -> None: ...
    def list_for_task(self, task_id: str) -> List[dict]: ...


class NotificationRepository(Protocol):
    def insert_many(self, notifications: List[Notification]) -> None: ...
    def list_for_user(self, user_id: str, limit: int) -> List[dict]: ...
    def mark_read(self, notification_id: str) -> None: ...
    def mark_all_read(self, user_id: str) -> int: ...


@dataclass
class Repositories:
    users: UserRepository
    groups: GroupRepository
    tasks: TaskRepository
    audits: AuditRepository
    notifications: NotificationRepository


def to_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


class _MongoCollection:
    collection_name = ""

    def __init__(self, db: Database):
        self.db = db
        self.col = db[self.collection_name]

    def get(self, record_id: str) -> Optional[dict]:
        oid = to_object_id(record_id)
        if oid is None:
            return None
        return serialize(self.col.find_one({"_id": oid}))

    def update(self, record_id: str, fields: dict) -> Optional[dict]:
        oid = to_object_id(record_id)
        if oid is None:
            return None
        doc = self.col.find_one_and_update(
            {"_id": oid},
            {"$set": fields, "$currentDate": {"updated_at": True}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize(doc)

    def _insert(self, model) -> dict:
        inserted_id = create_document(self.collection_name, model, database=self.db)
        return self.get(inserted_id)


class MongoUserRepository(_MongoCollection):
    collection_name = "user"

    def find_by_username(self, username: str) -> Optional[dict]:
        return serialize(self.col.find_one({"username": username}))

    def find_by_reset_token(self, token: str, now: datetime) -> Optional[dict]:
        return serialize(self.col.find_one({"reset_token": token, "reset_token_expiration": {"$gt": now}}))

    def create(self, user: User) -> str:
        return create_document(self.collection_name, user, database=self.db)

    def list_all(self) -> List[dict]:
        return [serialize(d) for d in get_documents(self.collection_name, database=self.db)]


class MongoGroupRepository(_MongoCollection):
    collection_name = "group"

    def list_all(self) -> List[dict]:
        return [serialize(d) for d in get_documents(self.collection_name, database=self.db)]

    def ids_with_member(self, user_id: str) -> List[str]:
        return [str(i) for i in self.col.distinct("_id", {"members": user_id})]

    def create(self, group: Group) -> dict:
        return self._insert(group)

    def delete(self, group_id: str) -> bool:
        oid = to_object_id(group_id)
        if oid is None:
            return False
        return self.col.delete_one({"_id": oid}).deleted_count > 0


class MongoTaskRepository(_MongoCollection):
    collection_name = "task"

    def list_visible(self, user_id: str, member_group_ids: Iterable[str]) -> List[dict]:
        return [serialize(d) for d in self.col.find(visibility_query(user_id, member_group_ids))]

    def create(self, task: Task) -> dict:
        return self._insert(task)

    def delete(self, task_id: str) -> bool:
        oid = to_object_id(task_id)
        if oid is None:
            return False
        return self.col.delete_one({"_id": oid}).deleted_count > 0

    def delete_by_group(self, group_id: str) -> int:
        return self.col.delete_many({"group": group_id}).deleted_count


class MongoAuditRepository(_MongoCollection):
    collection_name = "audit"

    def append(self, record: Audit) -> None:
        self.col.insert_one(record.model_dump())

    def list_for_task(self, task_id: str) -> List[dict]:
        cursor = self.col.find({"task_id": task_id}).sort("timestamp", DESCENDING)
        return [serialize(d) for d in cursor]


class MongoNotificationRepository(_MongoCollection):
    collection_name = "notification"

    def insert_many(self, notifications: List[Notification]) -> None:
        if notifications:
            self.col.insert_many([n.model_dump() for n in notifications])

    def list_for_user(self, user_id: str, limit: int) -> List[dict]:
        cursor = self.col.find({"user_id": user_id}).sort("created_at", DESCENDING).limit(limit)
        return [serialize(d) for d in cursor]

    def mark_read(self, notification_id: str) -> None:
        oid = to_object_id(notification_id)
        if oid is None:
            return
        self.col.update_one({"_id": oid}, {"$set": {"read": True}})

    def mark_all_read(self, user_id: str) -> int:
        return self.col.update_many({"user_id": user_id, "read": False}, {"$set": {"read": True}}).modified_count


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("username", ASCENDING)], unique=True)
    db["group"].create_index([("members", ASCENDING)])
    db["task"].create_index([("group", ASCENDING)])
    db["audit"].create_index([("task_id", ASCENDING), ("timestamp", DESCENDING)])
    db["notification"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])


def mongo_repositories(db: Database) -> Repositories:
    return Repositories(
        users=MongoUserRepository(db),
        groups=MongoGroupRepository(db),
        tasks=MongoTaskRepository(db),
        audits=MongoAuditRepository(db),
        notifications=MongoNotificationRepository(db),
    )
