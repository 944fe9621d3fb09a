from __future__ import annotations

import logging
from typing import List

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from . import activity
from .authorization import board_access, find_membership, is_owner_or_admin
from .config import settings
from .errors import bad_request, conflict, forbidden, not_found
from .models import (
    ActionType,
    Board,
    BoardList,
    BoardMember,
    EntityType,
    Profile,
    Role,
    Task,
)
from .pagination import PaginationMeta, offset_for, pagination_meta
from .schemas import BoardCreate, BoardUpdate

logger = logging.getLogger(__name__)

DEFAULT_LISTS = ("To Do", "In Progress", "Done")


def _load_board(db: Session, board_id: str) -> Board:
    board = db.get(Board, board_id)
    if board is None:
        raise not_found("Board not found")
    return board


# === Board operations ===


def list_boards_for_user(
    db: Session, user_id: str, page: int = 1, limit: int = 20
) -> tuple[List[Board], PaginationMeta]:
    """Boards the user owns or belongs to, newest first."""
    visible = or_(
        Board.owner_id == user_id,
        Board.members.any(BoardMember.user_id == user_id),
    )
    total = db.execute(select(func.count()).select_from(Board).where(visible)).scalar_one()
    stmt = (
        select(Board)
        .where(visible)
        .options(selectinload(Board.owner), selectinload(Board.members), selectinload(Board.lists))
        .order_by(Board.created_at.desc())
        .offset(offset_for(page, limit))
        .limit(limit)
    )
    boards = list(db.execute(stmt).scalars())
    return boards, pagination_meta(page, limit, total)


def create_board(db: Session, user_id: str, data: BoardCreate) -> Board:
    """Create a board seeded with the default lists."""
    board = Board(
        name=data.name,
        description=data.description,
        color=data.color or settings.DEFAULT_BOARD_COLOR,
        owner_id=user_id,
    )
    board.lists = [BoardList(name=name, position=index) for index, name in enumerate(DEFAULT_LISTS)]
    db.add(board)
    db.flush()
    activity.record(db, board.id, user_id, ActionType.CREATE, EntityType.BOARD, {"name": board.name})
    db.commit()
    db.refresh(board)
    logger.info("board %s created by %s", board.id, user_id)
    return board


def get_board(db: Session, board_id: str) -> Board:
    stmt = (
        select(Board)
        .where(Board.id == board_id)
        .options(
            selectinload(Board.owner),
            selectinload(Board.members).selectinload(BoardMember.user),
            selectinload(Board.lists).selectinload(BoardList.tasks).selectinload(Task.creator),
            selectinload(Board.lists).selectinload(BoardList.tasks).selectinload(Task.assignees),
        )
    )
    board = db.execute(stmt).scalar_one_or_none()
    if board is None:
        raise not_found("Board not found")
    return board


def update_board(db: Session, board_id: str, user_id: str, data: BoardUpdate) -> Board:
    board = _load_board(db, board_id)
    if board.owner_id != user_id:
        raise forbidden("Only the board owner can update this board")

    changes = {
        field: value
        for field, value in data.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or field == "description"
    }
    for field, value in changes.items():
        setattr(board, field, value)
    activity.record(db, board.id, user_id, ActionType.UPDATE, EntityType.BOARD, changes)
    db.commit()
    db.refresh(board)
    logger.info("board %s updated by %s: %s", board.id, user_id, sorted(changes))
    return board


def delete_board(db: Session, board_id: str, user_id: str) -> None:
    board = _load_board(db, board_id)
    if board.owner_id != user_id:
        raise forbidden("Only the board owner can delete this board")
    db.delete(board)
    db.commit()
    logger.info("board %s deleted by %s", board_id, user_id)


# === Member operations ===


def list_members(db: Session, board_id: str) -> List[BoardMember]:
    stmt = (
        select(BoardMember)
        .where(BoardMember.board_id == board_id)
        .options(selectinload(BoardMember.user))
        .order_by(BoardMember.created_at, BoardMember.id)
    )
    return list(db.execute(stmt).scalars())


def add_member(
    db: Session, board_id: str, user_id: str, new_member_id: str, role: Role = Role.EDITOR
) -> BoardMember:
    board = _load_board(db, board_id)
    if not is_owner_or_admin(board_access(db, board, user_id)):
        raise forbidden("Only the owner or admin can add members")

    if db.get(Profile, new_member_id) is None:
        raise not_found("User not found")
    if new_member_id == board.owner_id:
        raise bad_request("Cannot add the board owner as a member")
    if find_membership(db, board_id, new_member_id) is not None:
        raise conflict("User is already a member of this board")

    member = BoardMember(board_id=board_id, user_id=new_member_id, role=role.value)
    db.add(member)
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.CREATE,
        EntityType.BOARD,
        {"action": "member_added", "member_id": new_member_id, "role": role.value},
    )
    db.commit()
    db.refresh(member)
    logger.info("user %s added to board %s as %s by %s", new_member_id, board_id, role.value, user_id)
    return member


def remove_member(db: Session, board_id: str, user_id: str, target_user_id: str) -> None:
    """Owner removes anyone, admins remove others, anyone may leave."""
    board = _load_board(db, board_id)
    if board.owner_id != user_id and user_id != target_user_id:
        if not is_owner_or_admin(board_access(db, board, user_id)):
            raise forbidden("Insufficient permissions to remove members")

    if target_user_id == board.owner_id:
        raise bad_request("Cannot remove the board owner")

    member = find_membership(db, board_id, target_user_id)
    if member is None:
        raise not_found("Member not found")

    db.delete(member)
    activity.record(
        db,
        board_id,
        user_id,
        ActionType.DELETE,
        EntityType.BOARD,
        {"action": "member_removed", "member_id": target_user_id},
    )
    db.commit()
    logger.info("user %s removed from board %s by %s", target_user_id, board_id, user_id)
