import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from functools import partial
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, field_validator
from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from backend import audit, notifications
from backend.config import Settings, load_settings
from backend.describer import DescriptionError, DescriptionGenerator, DescriptionRequest
from backend.logging_setup import setup_logging
from backend.mailer import MailError, SMTPMailer, password_reset_email, welcome_email
from backend.repositories import Repositories, ensure_indexes, mongo_repositories
from backend.security import (
    InvalidToken,
    create_access_token,
    decode_access_token,
    generate_reset_token,
    get_password_hash,
    verify_password,
)
from backend.side_effects import run_side_effects
from backend.visibility import list_visible_tasks
from schemas import DONE_STATUS, Group, Priority, Task, TaskType, User, Visibility

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

router = APIRouter()


# Dependencies
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repositories(request: Request) -> Repositories:
    repos = request.app.state.repositories
    if repos is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return repos


class CurrentUser(BaseModel):
    id: str
    name: str
    username: str


def get_current_user(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    repos: Repositories = Depends(get_repositories),
) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = request.cookies.get(settings.session_cookie_name) or (bearer.credentials if bearer else None)
    try:
        user_id = decode_access_token(token, settings)
    except InvalidToken:
        raise credentials_exception

    user = repos.users.get(user_id)
    if not user:
        raise credentials_exception

    return CurrentUser(id=user["id"], name=user["name"], username=user["username"])


# Routes
@router.get("/")
def read_root():
    return {"message": "SyncEdge Tasks API running"}


@router.get("/health")
def health(request: Request):
    repos = request.app.state.repositories
    response = {"backend": "running", "database": "not configured"}
    if repos is not None:
        response["database"] = "configured"
        if database.db is not None:
            try:
                database.db.command("ping")
                response["database"] = "connected"
            except PyMongoError as e:
                response["database"] = f"error: {str(e)[:50]}"
    return response


# Auth Endpoints
def check_login_identifier(value: Optional[str]) -> Optional[str]:
    # Stored and matched exactly as sent; only the format is checked.
    if value is None:
        return value
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


class SignupPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    username: str
    password: str = Field(..., min_length=6)

    @field_validator("username")
    @classmethod
    def username_is_email(cls, value):
        return check_login_identifier(value)


class LoginPayload(BaseModel):
    username: str
    password: str


class ForgotPasswordPayload(BaseModel):
    email: str


class ResetPasswordPayload(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


def public_user(doc: dict) -> dict:
    return {"id": doc["id"], "name": doc.get("name"), "username": doc.get("username")}


@router.post("/api/users/signup", status_code=201)
def signup(payload: SignupPayload, request: Request, settings: Settings = Depends(get_settings),
           repos: Repositories = Depends(get_repositories)):
    if repos.users.find_by_username(payload.username):
        raise HTTPException(status_code=400, detail="Username already exists")

    user_doc = User(
        name=payload.name,
        username=payload.username,
        password_hash=get_password_hash(payload.password),
    )
    try:
        user_id = repos.users.create(user_doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username already exists")

    mail = welcome_email(payload.name)
    run_side_effects([
        ("welcome email", partial(request.app.state.mailer.send, payload.username, mail["subject"], text=mail["text"])),
    ])

    token = create_access_token({"sub": user_id}, settings)
    return {"token": token, "user_id": user_id}


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=False,
        secure=settings.session_cookie_secure,
        samesite="none" if settings.session_cookie_secure else "lax",
    )


@router.post("/api/users/login")
def login(payload: LoginPayload, response: Response, settings: Settings = Depends(get_settings),
          repos: Repositories = Depends(get_repositories)):
    user = repos.users.find_by_username(payload.username)
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=400, detail="Invalid username or password")

    token = create_access_token({"sub": user["id"]}, settings)
    set_session_cookie(response, token, settings)
    return {"token": token, "user_id": user["id"], "user_name": user["name"]}


@router.get("/api/users/verify")
def verify(current: CurrentUser = Depends(get_current_user)):
    return {"message": "JWT is valid", "user_id": current.id}


@router.get("/api/users/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    response.delete_cookie(
        settings.session_cookie_name,
        secure=settings.session_cookie_secure,
        samesite="none" if settings.session_cookie_secure else "lax",
    )
    return {"message": "Logged out successfully"}


@router.post("/api/users/forgot-password")
def forgot_password(payload: ForgotPasswordPayload, request: Request, settings: Settings = Depends(get_settings),
                    repos: Repositories = Depends(get_repositories)):
    user = repos.users.find_by_username(payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    token = generate_reset_token()
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_expire_minutes)
    repos.users.update(user["id"], {"reset_token": token, "reset_token_expiration": expires})

    mail = password_reset_email(settings.frontend_url, token)
    try:
        request.app.state.mailer.send(payload.email, mail["subject"], html=mail["html"])
    except MailError:
        logger.exception("Error sending password reset email")
        raise HTTPException(status_code=500, detail="Failed to send reset email")
    return {"message": "Password reset email sent"}


@router.post("/api/users/reset-password")
def reset_password(payload: ResetPasswordPayload, repos: Repositories = Depends(get_repositories)):
    user = repos.users.find_by_reset_token(payload.token, datetime.now(timezone.utc))
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    repos.users.update(user["id"], {
        "password_hash": get_password_hash(payload.password),
        "reset_token": None,
        "reset_token_expiration": None,
    })
    return {"message": "Password reset successful"}


# Profile Endpoints
class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    username: Optional[str] = None

    @field_validator("username")
    @classmethod
    def username_is_email(cls, value):
        return check_login_identifier(value)


@router.put("/api/users/{user_id}")
def update_profile(user_id: str, data: ProfileUpdate, current: CurrentUser = Depends(get_current_user),
                   repos: Repositories = Depends(get_repositories)):
    user = repos.users.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user["id"] != current.id:
        raise HTTPException(status_code=403, detail="Forbidden: You can only update your own profile")

    updates = data.model_dump(exclude_none=True)
    if "username" in updates and updates["username"] != user["username"]:
        other = repos.users.find_by_username(updates["username"])
        if other and other["id"] != user["id"]:
            raise HTTPException(status_code=400, detail="Username already exists")
    if not updates:
        return public_user(user)
    try:
        updated = repos.users.update(user_id, updates)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username already exists")
    return public_user(updated)


@router.get("/api/users")
def list_users(current: CurrentUser = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return [public_user(u) for u in repos.users.list_all()]


# Task Endpoints
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    link: Optional[str] = None
    tags: Optional[str] = None
    visibility: Visibility = "private"
    status: int = Field(default=1, ge=1, le=6)
    group: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    type: Optional[TaskType] = None
    linked_tasks: Optional[List[str]] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    link: Optional[str] = None
    tags: Optional[str] = None
    visibility: Optional[Visibility] = None
    status: Optional[int] = Field(None, ge=1, le=6)
    group: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    type: Optional[TaskType] = None
    linked_tasks: Optional[List[str]] = None


TASK_FIELDS = (
    "title", "description", "link", "tags", "visibility", "status", "completed", "group", "owner",
    "assigned_by", "assigned_to", "priority", "due_date", "type", "linked_tasks",
)


def serialize_task(doc: dict):
    task = {"id": doc["id"]}
    task.update({name: doc.get(name) for name in TASK_FIELDS})
    task["linked_tasks"] = doc.get("linked_tasks") or []
    return task


def check_group_reference(repos: Repositories, task: dict) -> None:
    if task.get("visibility") != "group":
        return
    if not task.get("group") or repos.groups.get(task["group"]) is None:
        raise HTTPException(status_code=400, detail="Group tasks must reference an existing group")


def task_side_effects(repos: Repositories, task: dict, action: str, kind: str, actor_id: str, changes: dict):
    # Audit first, notifications second; neither failure reaches the caller.
    run_side_effects([
        ("audit", partial(audit.record_audit, repos.audits, task["id"], action, actor_id, changes)),
        ("notify", partial(notifications.notify, repos.users, repos.groups, repos.notifications,
                           task, kind, actor_id)),
    ])


@router.get("/api/tasks")
def list_tasks(current: CurrentUser = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return [serialize_task(t) for t in list_visible_tasks(repos.tasks, repos.groups, current.id)]


@router.post("/api/tasks", status_code=201)
def create_task(data: TaskCreate, current: CurrentUser = Depends(get_current_user),
                repos: Repositories = Depends(get_repositories)):
    fields = data.model_dump(mode="json", exclude_none=True)
    check_group_reference(repos, fields)

    doc = Task(owner=current.id, completed=fields["status"] == DONE_STATUS, **fields)
    created = repos.tasks.create(doc)
    task_side_effects(repos, created, "create", notifications.ASSIGNMENT, current.id,
                      audit.creation_changes(created))
    return serialize_task(created)


@router.put("/api/tasks/{task_id}")
def update_task(task_id: str, data: TaskUpdate, current: CurrentUser = Depends(get_current_user),
                repos: Repositories = Depends(get_repositories)):
    before = repos.tasks.get(task_id)
    if not before:
        raise HTTPException(status_code=404, detail="Task not found")

    updates = data.model_dump(mode="json", exclude_none=True)
    if not updates.get("group"):
        updates.pop("group", None)
    merged = {**before, **updates}
    check_group_reference(repos, merged)
    updates["completed"] = merged.get("status", 1) == DONE_STATUS

    updated = repos.tasks.update(task_id, updates)
    if not updated:
        raise HTTPException(status_code=404, detail="Task not found")

    task_side_effects(repos, updated, "update", notifications.UPDATE, current.id,
                      audit.update_changes(before, updated))
    return serialize_task(updated)


@router.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, current: CurrentUser = Depends(get_current_user),
                repos: Repositories = Depends(get_repositories)):
    task = repos.tasks.get(task_id)
    if not task or not repos.tasks.delete(task_id):
        raise HTTPException(status_code=404, detail="Task not found")

    task_side_effects(repos, task, "delete", notifications.DELETED, current.id, audit.deletion_snapshot(task))
    return {"message": "Task deleted"}


@router.get("/api/tasks/{task_id}/audit")
def task_audit(task_id: str, current: CurrentUser = Depends(get_current_user),
               repos: Repositories = Depends(get_repositories)):
    if not repos.tasks.get(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return audit.get_audit_trail(repos.audits, repos.users, task_id)


# Group Endpoints
class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    members: List[str] = Field(default_factory=list)


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    members: Optional[List[str]] = None
    owner: Optional[str] = None


def owned_group(repos: Repositories, group_id: str, current: CurrentUser, verb: str) -> dict:
    group = repos.groups.get(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if group["owner"] != current.id:
        raise HTTPException(status_code=403, detail=f"Forbidden: Only the owner can {verb} the group")
    return group


@router.get("/api/groups")
def list_groups(current: CurrentUser = Depends(get_current_user), repos: Repositories = Depends(get_repositories)):
    return repos.groups.list_all()


@router.post("/api/groups", status_code=201)
def create_group(data: GroupCreate, current: CurrentUser = Depends(get_current_user),
                 repos: Repositories = Depends(get_repositories)):
    members = list(dict.fromkeys(data.members))
    return repos.groups.create(Group(name=data.name, owner=current.id, members=members))


@router.put("/api/groups/{group_id}")
def update_group(group_id: str, data: GroupUpdate, current: CurrentUser = Depends(get_current_user),
                 repos: Repositories = Depends(get_repositories)):
    group = owned_group(repos, group_id, current, "update")
    updates = data.model_dump(exclude_none=True)
    if "members" in updates:
        updates["members"] = list(dict.fromkeys(updates["members"]))
    if not updates:
        return group
    updated = repos.groups.update(group_id, updates)
    if "owner" in updates and updates["owner"] != current.id:
        logger.info("Group %s ownership transferred from %s to %s", group_id, current.id, updates["owner"])
    return updated


@router.delete("/api/groups/{group_id}")
def delete_group(group_id: str, current: CurrentUser = Depends(get_current_user),
                 repos: Repositories = Depends(get_repositories)):
    owned_group(repos, group_id, current, "delete")
    repos.groups.delete(group_id)
    removed = repos.tasks.delete_by_group(group_id)
    logger.info("Deleted group %s and %d task(s)", group_id, removed)
    return {"message": "Group deleted"}


# Notification Endpoints
@router.get("/api/notifications")
def list_notifications(current: CurrentUser = Depends(get_current_user),
                       repos: Repositories = Depends(get_repositories)):
    return notifications.list_feed(repos.notifications, current.id)


@router.put("/api/notifications/mark-all-read")
def mark_all_notifications_read(current: CurrentUser = Depends(get_current_user),
                                repos: Repositories = Depends(get_repositories)):
    notifications.mark_all_read(repos.notifications, current.id)
    return {"message": "All notifications marked as read"}


@router.put("/api/notifications/{notification_id}/read", status_code=204)
def mark_notification_read(notification_id: str, repos: Repositories = Depends(get_repositories)):
    notifications.mark_read(repos.notifications, notification_id)
    return Response(status_code=204)


@router.post("/api/generate-description")
def generate_description(data: DescriptionRequest, request: Request):
    try:
        text = request.app.state.describer.generate(data)
    except DescriptionError:
        logger.exception("Error generating task description")
        raise HTTPException(status_code=500, detail="Failed to generate description from AI")
    return {"description": text}


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


def create_app(repositories: Optional[Repositories] = None, settings: Optional[Settings] = None,
               mailer=None, describer=None) -> FastAPI:
    settings = settings or load_settings()
    db = database.db if repositories is None else None
    if repositories is None and db is not None:
        repositories = mongo_repositories(db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        if db is not None:
            try:
                ensure_indexes(db)
            except PyMongoError:
                logger.exception("Could not create MongoDB indexes")
        yield

    app = FastAPI(title="SyncEdge Tasks API", version="0.2.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.repositories = repositories
    app.state.mailer = mailer or SMTPMailer(settings)
    app.state.describer = describer or DescriptionGenerator(settings)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
