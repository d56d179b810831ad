"""Request authentication dependencies."""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from queuego.core.security import COOKIE_ACCESS_NAME, decode_access_token
from queuego.db.session import get_db


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        id: Alias for user_id.
    """

    def __init__(self, user_id: int, email: str):
        self.user_id = user_id
        self.id = user_id
        self.email = email


def _token_payload(request: Request) -> Optional[dict]:
    """Read the JWT from the Authorization header, falling back to the cookie."""
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get(COOKIE_ACCESS_NAME)
        if cookie_token:
            payload = decode_access_token(cookie_token)

    return payload


def get_current_user(request: Request, db=Depends(get_db)) -> TokenData:
    """Get the current authenticated user from JWT token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie (HttpOnly)
    """
    payload = _token_payload(request)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    email = payload.get("email")
    if user_id is None or email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    # Verify user is still active in the database
    from queuego.models.user import User
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    return TokenData(user_id=user_id, email=email)


CurrentUser = Annotated[TokenData, Depends(get_current_user)]
