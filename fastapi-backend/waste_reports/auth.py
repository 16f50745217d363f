from typing import Optional
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
import logging

from .config import get_settings
from .database import get_session
from .errors import RoleNotFound
from .identity import resolve_principal
from .models import Principal, Role

logger = logging.getLogger("app.auth")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)

_settings = get_settings()

SECRET_KEY = _settings.jwt_secret
if not SECRET_KEY:
    # Tokens come from the identity provider; without the shared secret we
    # cannot verify any of them, so refuse to start.
    raise ValueError("JWT_SECRET not found in environment or .env file.")

ALGORITHM = _settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = _settings.jwt_access_minutes

# auto_error=False so a missing header yields our JSON 401 instead of the
# security scheme's default response.
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    exp: Optional[int] = None


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the way the identity provider does (scripts and tests)."""
    to_encode = {"sub": str(subject)}
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Invalid token"},
        ) from exc


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session=Depends(get_session),
) -> Principal:
    """Resolve the bearer token to the acting principal and its role."""
    if not credentials or not getattr(credentials, "credentials", None):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"X-Auth-Reason": "No credentials"},
        )

    payload = decode_access_token(credentials.credentials)
    try:
        principal = await resolve_principal(session, payload.sub)
    except RoleNotFound:
        # Signed in at the identity provider but never provisioned here.
        logger.info("[auth] No role record for principal %r", payload.sub)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Role not found"},
        )
    logger.debug("[auth] Resolved principal %s with role %s", principal.id, principal.role)
    return principal


def require_role(*roles: Role):
    allowed = {Role(r) for r in roles}

    async def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if Role(principal.role) not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient privileges")
        return principal

    return role_checker


__all__ = [
    "TokenPayload",
    "create_access_token",
    "decode_access_token",
    "get_current_principal",
    "require_role",
]
