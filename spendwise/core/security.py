"""
Caller identity.
Tokens are issued by the surrounding auth system; this service only decodes
them to find the owner the request acts for.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Header

from spendwise.core.config import settings
from spendwise.core.errors import Unauthorized


def create_access_token(data: dict, expires_minutes: int = 60) -> str:
    payload = dict(data)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise Unauthorized(f"Invalid token: {e}")


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """Extract user_id from JWT token"""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Token required")

    token = authorization.replace("Bearer ", "", 1).strip()
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token")
    return user_id
