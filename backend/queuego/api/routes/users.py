"""User profile routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from queuego.core.auth import CurrentUser
from queuego.core.rate_limit import limiter
from queuego.db.session import DbSession
from queuego.models.user import User
from queuego.schemas.user import ProfileUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.patch("/me", response_model=UserResponse)
@limiter.limit("30/minute")
def update_profile(request: Request, data: ProfileUpdate, current_user: CurrentUser, db: DbSession):
    """Update name and/or the phone number used for notifications."""
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    updates = data.model_dump(exclude_unset=True)
    if updates.get("name") is not None:
        user.name = updates["name"]
    if "phone" in updates:
        user.phone = updates["phone"] or None

    db.commit()
    db.refresh(user)
    logger.info(f"Profile updated for user {user.id}: {sorted(updates)}")
    return user
