from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Role, TaskPriority

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class Input(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class Output(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Health(BaseModel):
    status: str = "ok"
    timestamp: datetime
    uptime: float


class Version(BaseModel):
    version: str


# === Requests ===


class BoardCreate(Input):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class BoardUpdate(Input):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    is_archived: Optional[bool] = None


class MemberCreate(Input):
    user_id: str = Field(min_length=1)
    role: Role = Role.EDITOR


class ListCreate(Input):
    name: str = Field(min_length=1, max_length=100)


class ListUpdate(Input):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


class TaskCreate(Input):
    list_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None


class TaskUpdate(Input):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None


class TaskMove(Input):
    list_id: str = Field(min_length=1)
    position: int = Field(ge=0)


class AssigneeCreate(Input):
    user_id: str = Field(min_length=1)


class TaskFilters(BaseModel):
    list_id: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    search: Optional[str] = None


# === Responses ===


class UserSummary(Output):
    id: str
    email: str
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None


class BoardOut(Output):
    id: str
    name: str
    description: Optional[str]
    color: str
    owner_id: str
    is_archived: bool
    created_at: datetime
    updated_at: datetime
    owner: UserSummary


class BoardSummaryOut(BoardOut):
    member_count: int
    list_count: int


class ListOut(Output):
    id: str
    board_id: str
    name: str
    position: int
    created_at: datetime
    updated_at: datetime


class ListRef(Output):
    id: str
    name: str


class AssigneeOut(Output):
    id: int
    task_id: str
    user_id: str
    assigned_at: datetime
    user: UserSummary


class TaskOut(Output):
    id: str
    list_id: str
    title: str
    description: Optional[str]
    priority: TaskPriority
    due_date: Optional[datetime]
    position: int
    created_by: str
    created_at: datetime
    updated_at: datetime
    creator: UserSummary
    assignees: List[AssigneeOut]
    list: ListRef


class ListWithTasks(ListOut):
    tasks: List[TaskOut]


class MemberOut(Output):
    id: int
    board_id: str
    user_id: str
    role: Role
    created_at: datetime
    user: UserSummary


class BoardCreated(BoardOut):
    lists: List[ListOut]


class BoardDetail(BoardOut):
    members: List[MemberOut]
    lists: List[ListWithTasks]


class TaskRef(Output):
    id: str
    title: str


class ActivityOut(Output):
    id: int
    board_id: str
    task_id: Optional[str]
    user_id: str
    action_type: str
    entity_type: str
    changes: dict[str, Any]
    created_at: datetime
    user: UserSummary
    task: Optional[TaskRef] = None
