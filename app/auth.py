import logging
import secrets
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.errors import AccessDeniedError, AuthenticationError
from app.utils.formatting import is_admin_email
from config import settings

_LOGGER = logging.getLogger(__name__)

OptionalBearerCreds = Annotated[
    Optional[HTTPAuthorizationCredentials], Depends(HTTPBearer(auto_error=False))
]


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return is_admin_email(self.email)


def decode_token(token: str) -> CurrentUser:
    """Validate an access token issued by the hosted auth provider."""
    if not settings.SUPABASE_JWT_SECRET:
        raise AuthenticationError("Authentication is not configured")
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        _LOGGER.warning("JWT validation failed: %s", e)
        raise AuthenticationError("Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Token has no subject")
    return CurrentUser(id=str(user_id), email=payload.get("email"))


def current_user(creds: OptionalBearerCreds) -> CurrentUser:
    if not creds:
        raise AuthenticationError("Missing bearer token")
    return decode_token(creds.credentials)


def admin_user(user: Annotated[CurrentUser, Depends(current_user)]) -> CurrentUser:
    if not user.is_admin:
        raise AccessDeniedError("Admin access required")
    return user


def _matches(candidate: Optional[str], *keys: Optional[str]) -> bool:
    return bool(candidate) and any(k and secrets.compare_digest(candidate, k) for k in keys)


def function_key(creds: OptionalBearerCreds, apikey: Annotated[Optional[str], Header()] = None) -> None:
    """Guard for the serverless-style functions: service-role or anon key as bearer or ``apikey``."""
    keys = (settings.SUPABASE_SERVICE_ROLE_KEY, settings.SUPABASE_ANON_KEY)
    if not any(keys):
        return  # DEV mode
    if _matches(creds.credentials if creds else None, *keys) or _matches(apikey, *keys):
        return
    if creds:
        # A signed-in user calling a function directly
        decode_token(creds.credentials)
        return
    raise AuthenticationError("Missing or invalid API key")


CurrentUserDep = Annotated[CurrentUser, Depends(current_user)]
AdminUserDep = Annotated[CurrentUser, Depends(admin_user)]
