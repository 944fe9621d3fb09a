from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .errors import bad_request
from .models import Profile


def search_users(db: Session, query: str, requester_id: str, limit: int = 10) -> List[Profile]:
    """Active profiles whose email or name contains ``query``, case-insensitively.

    The requesting user never appears in their own results.
    """
    q = query.strip().lower()
    if not q:
        raise bad_request("Search query must not be blank")
    stmt = (
        select(Profile)
        .where(
            Profile.id != requester_id,
            Profile.is_active.is_(True),
            or_(
                func.lower(Profile.email).contains(q, autoescape=True),
                func.lower(Profile.first_name).contains(q, autoescape=True),
                func.lower(Profile.last_name).contains(q, autoescape=True),
            ),
        )
        .order_by(Profile.first_name.asc(), Profile.last_name.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def create_profile(
    db: Session,
    email: str,
    first_name: str = "",
    last_name: str = "",
    avatar_url: Optional[str] = None,
    id: Optional[str] = None,
) -> Profile:
    """Provision a profile row, as the identity provider does on sign-up."""
    profile = Profile(
        email=email,
        first_name=first_name,
        last_name=last_name,
        avatar_url=avatar_url,
    )
    if id is not None:
        profile.id = id
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile
