"""
Identity dependencies.

Token verification happens in the auth gateway in front of this service.
The gateway forwards the verified user id in a trusted header; these
dependencies only read it.
"""

from fastapi import Depends, Request

from storefront.core.config import settings
from storefront.core.errors import ForbiddenError, UnauthorizedError


async def get_current_user_id(request: Request) -> str:
    """Authenticated user id, or 401 when the gateway supplied none."""
    user_id = request.headers.get(settings.identity_header, "").strip()
    if not user_id:
        raise UnauthorizedError()
    return user_id


async def require_admin(user_id: str = Depends(get_current_user_id)) -> str:
    """Authenticated admin user id, or 403."""
    if user_id not in settings.admin_user_ids:
        raise ForbiddenError()
    return user_id
