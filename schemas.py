"""
Database Schemas for SyncEdge Tasks

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name. Example: class User -> collection "user".
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Visibility = Literal["private", "group", "public"]
Priority = Literal["High", "Medium", "Low"]
TaskType = Literal["task", "user-story", "epic", "subtask", "bug"]
AuditAction = Literal["create", "update", "delete"]
NotificationKind = Literal["assignment", "update", "deleted"]

# Kanban columns, keyed by Task.status
STATUS_COLUMNS = {
    1: "Requirement Gathering",
    2: "In Dev",
    3: "Dev Completed",
    4: "In Testing",
    5: "Testing Done",
    6: "Done",
}
DONE_STATUS = 6


class User(BaseModel):
    """
    Users collection schema
    Collection: "user"
    """
    name: str = Field(..., min_length=1, max_length=120, description="Display name")
    username: str = Field(..., description="Unique login identifier (email)")
    password_hash: str = Field(..., description="BCrypt password hash")
    reset_token: Optional[str] = None
    reset_token_expiration: Optional[datetime] = None


class Group(BaseModel):
    """
    Groups collection schema
    Collection: "group"
    """
    name: str = Field(..., min_length=1, max_length=120)
    owner: str = Field(..., description="Owner user id (stringified ObjectId)")
    members: List[str] = Field(default_factory=list, description="Member user ids")


class Task(BaseModel):
    """
    Tasks collection schema
    Collection: "task"

    assigned_by / assigned_to hold whatever identity value the client sent;
    they are compared as opaque keys and never validated against users.
    """
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    link: Optional[str] = Field(None, description="Related resource link")
    tags: Optional[str] = Field(None, description="Comma-separated tags")
    visibility: Visibility = "private"
    status: int = Field(default=1, ge=1, le=6, description="Kanban column")
    completed: bool = Field(default=False)
    group: Optional[str] = Field(None, description="Group id, meaningful with visibility=group")
    owner: str = Field(..., description="Owner user id (stringified ObjectId)")
    assigned_by: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[str] = Field(None, description="ISO date")
    type: Optional[TaskType] = None
    linked_tasks: List[str] = Field(default_factory=list)


class Audit(BaseModel):
    """
    Audit collection schema (append-only)
    Collection: "audit"
    """
    task_id: str
    action: AuditAction
    changed_by: str
    changes: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class Notification(BaseModel):
    """
    Notifications collection schema
    Collection: "notification"
    """
    user_id: str = Field(..., description="Recipient")
    task_id: Optional[str] = None
    message: str
    type: NotificationKind
    read: bool = False
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None
