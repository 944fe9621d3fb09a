from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .db import get_db
from .errors import unauthorized
from .models import Profile


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> str:
    """Resolve the caller's profile id from the bearer token.

    Identity-provider verification lives outside this service: the bearer
    token is the profile id, and it must name an active profile.
    """
    if not authorization:
        raise unauthorized("Missing authorization header")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise unauthorized("Malformed authorization header")
    user_id = authorization[len(prefix) :].strip()
    profile = db.get(Profile, user_id) if user_id else None
    if profile is None or not profile.is_active:
        raise unauthorized("Invalid or expired token")
    return user_id
