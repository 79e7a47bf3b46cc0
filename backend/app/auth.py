"""
Bearer-token verification.

Sign-in lives with the identity provider; this backend only verifies the
HS256 access tokens it issues and turns their claims into a UserPrincipal.
Claims: ``sub`` (profile id), ``email`` and ``role``.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .principal import UserPrincipal

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60

bearer_scheme = HTTPBearer(auto_error=False)


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def decode_access_token(token: str) -> Dict[str, Any]:
    payload = jwt.decode(token, _secret_value(settings.secret_key), algorithms=[settings.algorithm])
    return cast(Dict[str, Any], payload)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Used by internal callers (the ``service`` role) and by tests; end users
    receive their tokens from the identity provider.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm)


def principal_from_token(token: str) -> UserPrincipal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation failed: {str(e)}")
        raise credentials_exception

    subject = payload.get("sub")
    if not subject:
        raise credentials_exception
    return UserPrincipal(
        user_id=str(subject),
        email=str(payload.get("email") or ""),
        role=str(payload.get("role") or "fighter"),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserPrincipal:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal_from_token(credentials.credentials)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[UserPrincipal]:
    """Principal when a valid bearer token is sent; ``None`` otherwise (never raises)."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return principal_from_token(credentials.credentials)
    except HTTPException:
        return None
