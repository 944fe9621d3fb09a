"""Dense zero-based ordering of siblings inside a scope.

Lists are ordered within their board and tasks within their list. Every
operation here issues its statements on the caller's session and never
commits, so a whole move is one transaction. After each operation the
positions of a scope are exactly ``0..n-1``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session


class Ordering:
    """Position maintenance for ``model`` grouped by its ``scope`` column.

    ``parent`` is the model the scope column points at. Its row is the lock
    that serializes every reorder, append and delete inside one scope.
    """

    def __init__(self, model: Any, scope: str, parent: Any) -> None:
        self.model = model
        self.scope = scope
        self.parent = parent

    @property
    def scope_column(self):
        return getattr(self.model, self.scope)

    def count(self, db: Session, scope_id: str) -> int:
        stmt = select(func.count()).select_from(self.model).where(self.scope_column == scope_id)
        return db.execute(stmt).scalar_one()

    def append_position(self, db: Session, scope_id: str) -> int:
        stmt = select(func.max(self.model.position)).where(self.scope_column == scope_id)
        last = db.execute(stmt).scalar_one_or_none()
        return (last if last is not None else -1) + 1

    def lock_scope(self, db: Session, scope_id: str) -> None:
        """Row-lock the scope's parent where the store supports it.

        Locking the parent rather than the siblings also covers an empty scope.
        """
        db.execute(select(self.parent.id).where(self.parent.id == scope_id).with_for_update())

    def lock_item(self, db: Session, item: Any, *scope_ids: str) -> str:
        """Lock the scopes in id order, then re-read ``item`` under the lock.

        Returns the item's current scope id. If another transaction moved the
        item to a scope not yet locked, that scope is locked too.
        """
        locked: set = set()
        wanted = set(scope_ids)
        while True:
            for scope_id in sorted(wanted - locked):
                self.lock_scope(db, scope_id)
            locked |= wanted
            db.refresh(item, with_for_update=True)
            current = getattr(item, self.scope)
            if current in locked:
                return current
            wanted = {current}

    def _shift(self, db: Session, scope_id: str, delta: int, *criteria) -> None:
        stmt = (
            update(self.model)
            .where(self.scope_column == scope_id, *criteria)
            .values(position=self.model.position + delta)
            .execution_options(synchronize_session="fetch")
        )
        db.execute(stmt)

    def move(self, db: Session, item: Any, new_position: int) -> int:
        """Move ``item`` to ``new_position`` inside its current scope."""
        scope_id = self.lock_item(db, item, getattr(item, self.scope))
        old = item.position
        new = clamp(new_position, 0, self.count(db, scope_id) - 1)
        position = self.model.position
        if new > old:
            self._shift(db, scope_id, -1, position > old, position <= new, self.model.id != item.id)
        elif new < old:
            self._shift(db, scope_id, 1, position >= new, position < old, self.model.id != item.id)
        item.position = new
        db.flush()
        return new

    def transfer(self, db: Session, item: Any, target_scope_id: str, new_position: int) -> int:
        """Move ``item`` into another scope at ``new_position``."""
        source_scope_id = self.lock_item(db, item, getattr(item, self.scope), target_scope_id)
        if source_scope_id == target_scope_id:
            return self.move(db, item, new_position)
        old = item.position
        new = clamp(new_position, 0, self.count(db, target_scope_id))
        position = self.model.position
        self._shift(db, source_scope_id, -1, position > old)
        self._shift(db, target_scope_id, 1, position >= new)
        setattr(item, self.scope, target_scope_id)
        item.position = new
        db.flush()
        return new

    def close_gap(self, db: Session, scope_id: str, position: int) -> None:
        """Pull every sibling after a removed ``position`` one step left."""
        self._shift(db, scope_id, -1, self.model.position > position)
        db.flush()

    def positions(self, db: Session, scope_id: str) -> list[int]:
        stmt = (
            select(self.model.position)
            .where(self.scope_column == scope_id)
            .order_by(self.model.position)
        )
        return list(db.execute(stmt).scalars())


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
