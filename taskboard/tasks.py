from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from . import activity
from .errors import bad_request, conflict, not_found
from .lists import get_list
from .models import (
    ActionType,
    Board,
    BoardList,
    BoardMember,
    EntityType,
    Task,
    TaskAssignee,
)
from .pagination import PaginationMeta, offset_for, pagination_meta
from .positions import Ordering
from .schemas import TaskCreate, TaskFilters, TaskMove, TaskUpdate

logger = logging.getLogger(__name__)

TASK_ORDER = Ordering(Task, "list_id", BoardList)

NULLABLE_FIELDS = {"description", "due_date"}


def _task_query():
    return select(Task).options(
        selectinload(Task.creator),
        selectinload(Task.assignees).selectinload(TaskAssignee.user),
        selectinload(Task.list),
    )


def get_task(db: Session, board_id: str, task_id: str) -> Task:
    stmt = _task_query().join(Task.list).where(Task.id == task_id, BoardList.board_id == board_id)
    task = db.execute(stmt).scalar_one_or_none()
    if task is None:
        raise not_found("Task not found")
    return task


def list_tasks(
    db: Session, board_id: str, filters: TaskFilters, page: int = 1, limit: int = 50
) -> tuple[List[Task], PaginationMeta]:
    criteria = [BoardList.board_id == board_id]
    if filters.list_id:
        criteria.append(Task.list_id == filters.list_id)
    if filters.priority:
        criteria.append(Task.priority == filters.priority.value)
    if filters.search:
        needle = filters.search.strip().lower()
        criteria.append(
            or_(
                func.lower(Task.title).contains(needle, autoescape=True),
                func.lower(Task.description).contains(needle, autoescape=True),
            )
        )
    if filters.assigned_to:
        criteria.append(Task.assignees.any(TaskAssignee.user_id == filters.assigned_to))

    count_stmt = select(func.count()).select_from(Task).join(Task.list).where(*criteria)
    total = db.execute(count_stmt).scalar_one()
    stmt = (
        _task_query()
        .join(Task.list)
        .where(*criteria)
        .order_by(BoardList.position, Task.position)
        .offset(offset_for(page, limit))
        .limit(limit)
    )
    tasks = list(db.execute(stmt).scalars())
    return tasks, pagination_meta(page, limit, total)


def create_task(db: Session, board_id: str, user_id: str, data: TaskCreate) -> Task:
    board_list = get_list(db, board_id, data.list_id)
    TASK_ORDER.lock_scope(db, board_list.id)
    task = Task(
        list_id=board_list.id,
        title=data.title,
        description=data.description,
        priority=data.priority.value,
        due_date=data.due_date,
        position=TASK_ORDER.append_position(db, board_list.id),
        created_by=user_id,
    )
    db.add(task)
    db.flush()
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.CREATE,
        EntityType.TASK,
        {"title": task.title, "list": board_list.name},
        task_id=task.id,
    )
    db.commit()
    logger.info("task %s created in list %s at %d", task.id, board_list.id, task.position)
    return get_task(db, board_id, task.id)


def update_task(db: Session, board_id: str, task_id: str, user_id: str, data: TaskUpdate) -> Task:
    task = get_task(db, board_id, task_id)
    updates = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    for field, value in updates.items():
        setattr(task, field, getattr(value, "value", value))

    changes = {
        field: value
        for field, value in data.model_dump(mode="json", exclude_unset=True).items()
        if field in updates
    }
    activity.record(db, board_id, user_id, ActionType.UPDATE, EntityType.TASK, changes, task_id=task.id)
    db.commit()
    logger.info("task %s updated: %s", task_id, sorted(changes))
    return get_task(db, board_id, task_id)


def delete_task(db: Session, board_id: str, task_id: str, user_id: str) -> None:
    """Delete a task and close the gap in its list."""
    task = get_task(db, board_id, task_id)
    list_id = TASK_ORDER.lock_item(db, task, task.list_id)
    position = task.position
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.DELETE,
        EntityType.TASK,
        {"title": task.title, "list": task.list.name},
        task_id=task.id,
    )
    db.delete(task)
    db.flush()
    TASK_ORDER.close_gap(db, list_id, position)
    db.commit()
    logger.info("task %s deleted from list %s", task_id, list_id)


def move_task(db: Session, board_id: str, task_id: str, user_id: str, data: TaskMove) -> Task:
    """Move a task within its list or to another list on the same board."""
    task = get_task(db, board_id, task_id)
    source = task.list

    target = db.get(BoardList, data.list_id)
    if target is None:
        raise not_found("Target list not found")
    if target.board_id != source.board_id:
        raise bad_request("Cannot move task to a list on a different board")

    if target.id == source.id:
        position = TASK_ORDER.move(db, task, data.position)
    else:
        position = TASK_ORDER.transfer(db, task, target.id, data.position)

    activity.record(
        db,
        board_id,
        user_id,
        ActionType.UPDATE,
        EntityType.TASK,
        {
            "action": "moved",
            "from_list": source.name,
            "to_list": target.name,
            "new_position": position,
        },
        task_id=task.id,
    )
    db.commit()
    logger.info("task %s moved from list %s to %s at %d", task_id, source.id, target.id, position)
    return get_task(db, board_id, task_id)


# === Assignees ===


def _is_board_participant(db: Session, board_id: str, user_id: str) -> bool:
    board = db.get(Board, board_id)
    if board is not None and board.owner_id == user_id:
        return True
    stmt = select(BoardMember.id).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id)
    return db.execute(stmt).first() is not None


def _find_assignment(db: Session, task_id: str, user_id: str) -> TaskAssignee | None:
    stmt = select(TaskAssignee).where(TaskAssignee.task_id == task_id, TaskAssignee.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def assign_user(db: Session, board_id: str, task_id: str, user_id: str, assignee_id: str) -> TaskAssignee:
    task = get_task(db, board_id, task_id)
    if not _is_board_participant(db, board_id, assignee_id):
        raise bad_request("User is not a member of this board")
    if _find_assignment(db, task.id, assignee_id) is not None:
        raise conflict("User is already assigned to this task")

    assignment = TaskAssignee(task_id=task.id, user_id=assignee_id)
    db.add(assignment)
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.CREATE,
        EntityType.TASK,
        {"action": "user_assigned", "assignee_id": assignee_id},
        task_id=task.id,
    )
    db.commit()
    db.refresh(assignment)
    logger.info("user %s assigned to task %s", assignee_id, task_id)
    return assignment


def unassign_user(db: Session, board_id: str, task_id: str, user_id: str, assignee_id: str) -> None:
    task = get_task(db, board_id, task_id)
    assignment = _find_assignment(db, task.id, assignee_id)
    if assignment is None:
        raise not_found("Assignment not found")

    db.delete(assignment)
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.DELETE,
        EntityType.TASK,
        {"action": "user_unassigned", "assignee_id": assignee_id},
        task_id=task.id,
    )
    db.commit()
    logger.info("user %s unassigned from task %s", assignee_id, task_id)
