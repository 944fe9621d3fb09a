from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import activity
from .errors import not_found
from .models import ActionType, Board, BoardList, EntityType
from .positions import Ordering
from .schemas import ListCreate, ListUpdate

logger = logging.getLogger(__name__)

LIST_ORDER = Ordering(BoardList, "board_id", Board)


def get_list(db: Session, board_id: str, list_id: str) -> BoardList:
    stmt = select(BoardList).where(BoardList.id == list_id, BoardList.board_id == board_id)
    board_list = db.execute(stmt).scalar_one_or_none()
    if board_list is None:
        raise not_found("List not found")
    return board_list


def create_list(db: Session, board_id: str, user_id: str, data: ListCreate) -> BoardList:
    LIST_ORDER.lock_scope(db, board_id)
    board_list = BoardList(
        board_id=board_id,
        name=data.name,
        position=LIST_ORDER.append_position(db, board_id),
    )
    db.add(board_list)
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.CREATE,
        EntityType.LIST,
        {"name": board_list.name, "position": board_list.position},
    )
    db.commit()
    db.refresh(board_list)
    logger.info("list %s created on board %s at %d", board_list.id, board_id, board_list.position)
    return board_list


def update_list(db: Session, board_id: str, list_id: str, user_id: str, data: ListUpdate) -> BoardList:
    """Rename a list and/or move it to another position on its board."""
    board_list = get_list(db, board_id, list_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    # Reorder first: the move re-reads the row under its lock.
    if "position" in changes:
        changes["position"] = LIST_ORDER.move(db, board_list, changes["position"])
    if "name" in changes:
        board_list.name = changes["name"]

    activity.record(db, board_id, user_id, ActionType.UPDATE, EntityType.LIST, changes)
    db.commit()
    db.refresh(board_list)
    logger.info("list %s updated on board %s: %s", list_id, board_id, changes)
    return board_list


def delete_list(db: Session, board_id: str, list_id: str, user_id: str) -> None:
    """Delete a list with its tasks and close the gap it leaves."""
    board_list = get_list(db, board_id, list_id)
    LIST_ORDER.lock_item(db, board_list, board_id)
    name, position = board_list.name, board_list.position

    db.delete(board_list)
    db.flush()
    LIST_ORDER.close_gap(db, board_id, position)
    activity.record(db, board_id, user_id, ActionType.DELETE, EntityType.LIST, {"name": name})
    db.commit()
    logger.info("list %s deleted from board %s", list_id, board_id)
