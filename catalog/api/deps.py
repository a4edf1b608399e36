from typing import Optional

from fastapi import Header

from catalog.exceptions import AuthError
from catalog.models.review import USER_ID_MAX_LENGTH
from catalog.services.review_service import Reviewer


def get_current_user(
    x_user_id: Optional[str] = Header(None, description="Authenticated user id (set by the auth gateway)"),
    x_user_name: Optional[str] = Header(None, description="Authenticated user display name"),
) -> Reviewer:
    """
    Resolve the caller's identity.

    Tokens are verified upstream; the gateway forwards the resulting
    identity in headers. A request without one is rejected.
    """
    user_id = (x_user_id or "").strip()
    if not user_id or len(user_id) > USER_ID_MAX_LENGTH:
        raise AuthError("Invalid token")
    name = (x_user_name or "").strip() or user_id
    return Reviewer(id=user_id, name=name)
