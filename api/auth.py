"""
Brickstore - Request Identity

Carts and orders belong to the user named by the ``X-User-Id`` header.
Authentication itself happens upstream of this service.
"""
from typing import Optional

from fastapi import Security
from fastapi.security import APIKeyHeader

from core.errors import UnauthorizedError

USER_HEADER = "X-User-Id"

user_header = APIKeyHeader(name=USER_HEADER, auto_error=False)


async def get_user_id(raw: Optional[str] = Security(user_header)) -> int:
    """Resolve the calling user; missing or non-numeric ids are rejected."""
    if raw is None:
        raise UnauthorizedError(f"Missing {USER_HEADER} header")
    try:
        user_id = int(raw)
    except ValueError as e:
        raise UnauthorizedError(f"Invalid {USER_HEADER} header: {raw!r}", cause=e) from e
    if user_id <= 0:
        raise UnauthorizedError(f"Invalid {USER_HEADER} header: {raw!r}")
    return user_id
