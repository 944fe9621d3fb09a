from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import ActionType, ActivityLog, EntityType
from .pagination import PaginationMeta, offset_for, pagination_meta


def record(
    db: Session,
    board_id: str,
    user_id: str,
    action_type: ActionType,
    entity_type: EntityType,
    changes: dict[str, Any],
    task_id: Optional[str] = None,
) -> ActivityLog:
    """Append a log entry to the caller's transaction. The caller commits."""
    entry = ActivityLog(
        board_id=board_id,
        task_id=task_id,
        user_id=user_id,
        action_type=action_type.value,
        entity_type=entity_type.value,
        changes=changes,
    )
    db.add(entry)
    return entry


def get_activity_log(
    db: Session,
    board_id: str,
    task_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ActivityLog], PaginationMeta]:
    criteria = [ActivityLog.board_id == board_id]
    if task_id:
        criteria.append(ActivityLog.task_id == task_id)

    total = db.execute(select(func.count()).select_from(ActivityLog).where(*criteria)).scalar_one()
    stmt = (
        select(ActivityLog)
        .where(*criteria)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset_for(page, limit))
        .limit(limit)
    )
    logs = list(db.execute(stmt).scalars())
    return logs, pagination_meta(page, limit, total)
