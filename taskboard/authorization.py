"""Board access resolution and the per-action role table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Union

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import get_current_user
from .db import get_db
from .errors import forbidden, not_found
from .models import Board, BoardMember, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Owner:
    """The board owner. Passes every role check."""


@dataclass(frozen=True)
class Member:
    role: Role


Access = Union[Owner, Member]

ANY_MEMBER: tuple[Role, ...] = ()
ADMIN_ONLY = (Role.ADMIN,)
ADMIN_OR_EDITOR = (Role.ADMIN, Role.EDITOR)

# Each action lists its roles explicitly. Roles are not ranked.
PERMISSIONS: dict[str, tuple[Role, ...]] = {
    "board.read": ANY_MEMBER,
    "board.update": ADMIN_ONLY,
    "member.list": ANY_MEMBER,
    "member.add": ADMIN_ONLY,
    "member.remove": ANY_MEMBER,
    "list.create": ADMIN_OR_EDITOR,
    "list.update": ADMIN_OR_EDITOR,
    "list.delete": ADMIN_ONLY,
    "activity.read": ANY_MEMBER,
    "task.read": ANY_MEMBER,
    "task.create": ADMIN_OR_EDITOR,
    "task.update": ADMIN_OR_EDITOR,
    "task.delete": ADMIN_OR_EDITOR,
    "task.move": ADMIN_OR_EDITOR,
    "task.assign": ADMIN_OR_EDITOR,
    "task.unassign": ADMIN_OR_EDITOR,
}


def find_membership(db: Session, board_id: str, user_id: str) -> BoardMember | None:
    stmt = select(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def board_access(db: Session, board: Board, user_id: str) -> Access | None:
    """The caller's access to ``board``, or None for outsiders."""
    if board.owner_id == user_id:
        return Owner()
    membership = find_membership(db, board.id, user_id)
    if membership is None:
        return None
    return Member(Role(membership.role))


def resolve_access(db: Session, board_id: str, user_id: str) -> Access:
    board = db.get(Board, board_id)
    if board is None:
        raise not_found("Board not found")
    access = board_access(db, board, user_id)
    if access is None:
        raise forbidden("You are not a member of this board")
    return access


def check_roles(access: Access, allowed: Iterable[Role]) -> None:
    allowed = tuple(allowed)
    if isinstance(access, Owner) or not allowed:
        return
    if access.role not in allowed:
        raise forbidden(f"Requires one of: {', '.join(role.value for role in allowed)}")


def authorize(db: Session, board_id: str, user_id: str, allowed: Iterable[Role] = ANY_MEMBER) -> Access:
    access = resolve_access(db, board_id, user_id)
    check_roles(access, allowed)
    return access


def is_owner_or_admin(access: Access | None) -> bool:
    if isinstance(access, Owner):
        return True
    return isinstance(access, Member) and access.role == Role.ADMIN


def require(action: str) -> Callable[..., Access]:
    """Build a dependency enforcing ``action`` on the ``board_id`` path parameter."""
    allowed = PERMISSIONS[action]

    def dependency(
        board_id: str,
        user: str = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> Access:
        access = authorize(db, board_id, user, allowed)
        logger.debug("user %s granted %s on board %s as %s", user, action, board_id, access)
        return access

    return dependency
