# backend/app/api/dependencies/auth.py
"""
Authentication dependencies.

Callers are identified from bearer-token claims only; no profile lookup
happens before the role check, so a forbidden caller learns nothing about
the booking it asked for.
"""

import logging
from typing import Awaitable, Callable, Optional

from fastapi import Depends

from ...auth import (
    get_current_user as auth_get_current_user,
    get_current_user_optional as auth_get_current_user_optional,
)
from ...core.exceptions import ForbiddenException
from ...principal import UserPrincipal

logger = logging.getLogger(__name__)


async def get_current_user(
    principal: UserPrincipal = Depends(auth_get_current_user),
) -> UserPrincipal:
    return principal


async def get_current_user_optional(
    principal: Optional[UserPrincipal] = Depends(auth_get_current_user_optional),
) -> Optional[UserPrincipal]:
    return principal


async def require_admin(user: UserPrincipal = Depends(get_current_user)) -> UserPrincipal:
    """Dependency that ensures the caller has administrator privileges."""

    if not user.is_admin:
        logger.warning(f"Non-admin {user.identifier} attempted an admin-only action")
        raise ForbiddenException().to_http_exception()
    return user


def require_roles(*roles: str) -> Callable[..., Awaitable[UserPrincipal]]:
    """Ensure the caller's token carries one of ``roles``; fixed 403 otherwise."""

    required = {role.lower() for role in roles}

    async def checker(current_user: UserPrincipal = Depends(get_current_user)) -> UserPrincipal:
        if current_user.role.lower() not in required:
            logger.warning(
                f"{current_user.identifier} with role {current_user.role} denied; "
                f"needs one of {', '.join(sorted(required))}"
            )
            raise ForbiddenException().to_http_exception()
        return current_user

    return checker
