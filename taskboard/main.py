import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import activity, boards, lists, tasks, users
from .auth import get_current_user
from .authorization import Access, require
from .config import settings
from .db import get_db, init_db
from .errors import register_error_handlers
from .models import TaskPriority
from .pagination import PaginationMeta
from .schemas import (
    ActivityOut,
    AssigneeCreate,
    AssigneeOut,
    BoardCreate,
    BoardCreated,
    BoardDetail,
    BoardOut,
    BoardSummaryOut,
    BoardUpdate,
    Health,
    ListCreate,
    ListOut,
    ListUpdate,
    MemberCreate,
    MemberOut,
    TaskCreate,
    TaskFilters,
    TaskMove,
    TaskOut,
    TaskUpdate,
    UserSummary,
    Version,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# === Helpers ===


def ok(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[PaginationMeta] = None,
) -> dict:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body


# === Health & metadata ===


@app.get("/", response_model=dict)
def root() -> dict:
    return ok(message="Welcome to the Taskboard API")


@app.get("/api/health", response_model=dict)
def health() -> dict:
    return ok(Health(timestamp=datetime.now(timezone.utc), uptime=round(time.monotonic() - STARTED_AT, 3)))


@app.get("/api/version", response_model=dict)
def version() -> dict:
    return ok(Version(version=settings.APP_VERSION))


# === Board endpoints ===


@app.get("/api/boards", response_model=dict)
def list_boards(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    found, pagination = boards.list_boards_for_user(db, user, page, limit)
    return ok([BoardSummaryOut.model_validate(b) for b in found], pagination=pagination)


@app.post("/api/boards", response_model=dict, status_code=201)
def create_board(
    payload: BoardCreate,
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    board = boards.create_board(db, user, payload)
    return ok(BoardCreated.model_validate(board), "Board created successfully")


@app.get("/api/boards/{board_id}", response_model=dict)
def get_board(
    board_id: str,
    access: Access = Depends(require("board.read")),
    db: Session = Depends(get_db),
):
    return ok(BoardDetail.model_validate(boards.get_board(db, board_id)))


@app.put("/api/boards/{board_id}", response_model=dict)
def update_board(
    board_id: str,
    payload: BoardUpdate,
    access: Access = Depends(require("board.update")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    board = boards.update_board(db, board_id, user, payload)
    return ok(BoardOut.model_validate(board), "Board updated successfully")


@app.delete("/api/boards/{board_id}", response_model=dict)
def delete_board(
    board_id: str,
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # Ownership is checked by the service.
    boards.delete_board(db, board_id, user)
    return ok(message="Board deleted successfully")


# === Member endpoints ===


@app.get("/api/boards/{board_id}/members", response_model=dict)
def list_members(
    board_id: str,
    access: Access = Depends(require("member.list")),
    db: Session = Depends(get_db),
):
    return ok([MemberOut.model_validate(m) for m in boards.list_members(db, board_id)])


@app.post("/api/boards/{board_id}/members", response_model=dict, status_code=201)
def add_member(
    board_id: str,
    payload: MemberCreate,
    access: Access = Depends(require("member.add")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    member = boards.add_member(db, board_id, user, payload.user_id, payload.role)
    return ok(MemberOut.model_validate(member), "Member added successfully")


@app.delete("/api/boards/{board_id}/members/{user_id}", response_model=dict)
def remove_member(
    board_id: str,
    user_id: str,
    access: Access = Depends(require("member.remove")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    boards.remove_member(db, board_id, user, user_id)
    return ok(message="Member removed successfully")


# === List endpoints ===


@app.post("/api/boards/{board_id}/lists", response_model=dict, status_code=201)
def create_list(
    board_id: str,
    payload: ListCreate,
    access: Access = Depends(require("list.create")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    board_list = lists.create_list(db, board_id, user, payload)
    return ok(ListOut.model_validate(board_list), "List created successfully")


@app.put("/api/boards/{board_id}/lists/{list_id}", response_model=dict)
def update_list(
    board_id: str,
    list_id: str,
    payload: ListUpdate,
    access: Access = Depends(require("list.update")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    board_list = lists.update_list(db, board_id, list_id, user, payload)
    return ok(ListOut.model_validate(board_list), "List updated successfully")


@app.delete("/api/boards/{board_id}/lists/{list_id}", response_model=dict)
def delete_list(
    board_id: str,
    list_id: str,
    access: Access = Depends(require("list.delete")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    lists.delete_list(db, board_id, list_id, user)
    return ok(message="List deleted successfully")


# === Activity endpoints ===


@app.get("/api/boards/{board_id}/activity", response_model=dict)
def get_activity(
    board_id: str,
    task_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    access: Access = Depends(require("activity.read")),
    db: Session = Depends(get_db),
):
    logs, pagination = activity.get_activity_log(db, board_id, task_id, page, limit)
    return ok([ActivityOut.model_validate(entry) for entry in logs], pagination=pagination)


# === Task endpoints ===


@app.get("/api/boards/{board_id}/tasks", response_model=dict)
def list_tasks(
    board_id: str,
    list_id: Optional[str] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    access: Access = Depends(require("task.read")),
    db: Session = Depends(get_db),
):
    filters = TaskFilters(list_id=list_id, priority=priority, assigned_to=assigned_to, search=search)
    found, pagination = tasks.list_tasks(db, board_id, filters, page, limit)
    return ok([TaskOut.model_validate(t) for t in found], pagination=pagination)


@app.post("/api/boards/{board_id}/tasks", response_model=dict, status_code=201)
def create_task(
    board_id: str,
    payload: TaskCreate,
    access: Access = Depends(require("task.create")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = tasks.create_task(db, board_id, user, payload)
    return ok(TaskOut.model_validate(task), "Task created successfully")


@app.get("/api/boards/{board_id}/tasks/{task_id}", response_model=dict)
def get_task(
    board_id: str,
    task_id: str,
    access: Access = Depends(require("task.read")),
    db: Session = Depends(get_db),
):
    return ok(TaskOut.model_validate(tasks.get_task(db, board_id, task_id)))


@app.put("/api/boards/{board_id}/tasks/{task_id}", response_model=dict)
def update_task(
    board_id: str,
    task_id: str,
    payload: TaskUpdate,
    access: Access = Depends(require("task.update")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = tasks.update_task(db, board_id, task_id, user, payload)
    return ok(TaskOut.model_validate(task), "Task updated successfully")


@app.delete("/api/boards/{board_id}/tasks/{task_id}", response_model=dict)
def delete_task(
    board_id: str,
    task_id: str,
    access: Access = Depends(require("task.delete")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tasks.delete_task(db, board_id, task_id, user)
    return ok(message="Task deleted successfully")


@app.put("/api/boards/{board_id}/tasks/{task_id}/move", response_model=dict)
def move_task(
    board_id: str,
    task_id: str,
    payload: TaskMove,
    access: Access = Depends(require("task.move")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = tasks.move_task(db, board_id, task_id, user, payload)
    return ok(TaskOut.model_validate(task), "Task moved successfully")


@app.post("/api/boards/{board_id}/tasks/{task_id}/assignees", response_model=dict, status_code=201)
def assign_user(
    board_id: str,
    task_id: str,
    payload: AssigneeCreate,
    access: Access = Depends(require("task.assign")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    assignment = tasks.assign_user(db, board_id, task_id, user, payload.user_id)
    return ok(AssigneeOut.model_validate(assignment), "User assigned successfully")


@app.delete("/api/boards/{board_id}/tasks/{task_id}/assignees/{user_id}", response_model=dict)
def unassign_user(
    board_id: str,
    task_id: str,
    user_id: str,
    access: Access = Depends(require("task.unassign")),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tasks.unassign_user(db, board_id, task_id, user, user_id)
    return ok(message="User unassigned successfully")


# === User endpoints ===


@app.get("/api/users/search", response_model=dict)
def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    user: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok([UserSummary.model_validate(p) for p in users.search_users(db, q, user, limit)])
