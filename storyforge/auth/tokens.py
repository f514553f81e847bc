"""Signed bearer tokens for API callers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import current_app

from ..extensions import db
from ..models import User

TOKEN_ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "


def issue_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    ttl = int(current_app.config["ACCESS_TOKEN_TTL_SECONDS"])
    payload = {
        "sub": user.id,
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=TOKEN_ALGORITHM)


def load_user_from_token(token: str) -> Optional[User]:
    try:
        payload = jwt.decode(
            token,
            current_app.config["SECRET_KEY"],
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.InvalidTokenError as exc:
        current_app.logger.info("Rejected bearer token: %s", exc)
        return None

    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        return None
    return db.session.get(User, user_id)


def load_user_from_authorization(header_value: Optional[str]) -> Optional[User]:
    """Resolve an ``Authorization`` header to an account, or ``None``."""

    if not header_value or not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX):].strip()
    if not token:
        return None
    return load_user_from_token(token)
