from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


class NotAuthenticatedError(Exception):
    pass


def create_access_token(user_id: str, ttl: Optional[timedelta] = None) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (ttl or timedelta(hours=settings.jwt_ttl_hours))
    claims = {"sub": str(user_id), "iat": issued_at, "exp": expires_at}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise NotAuthenticatedError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise NotAuthenticatedError("Invalid token") from exc

    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise NotAuthenticatedError("Invalid token")
    return user_id


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise NotAuthenticatedError("Not authorized, no token")
    return decode_access_token(credentials.credentials)
