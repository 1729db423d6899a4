"""Verification of identity provider bearer tokens.

The identity provider signs HS256 JWTs whose ``sub`` claim is the actor's
UUID. ``create_access_token`` mints the same shape for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Any
from uuid import UUID, uuid4

from jose import JWTError, jwt

from app.core.config import settings

_dev_logger = logging.getLogger("giftlink.security")
_insecure_keys = {"CHANGE_ME", "secret", "jwt_secret", "changeme", ""}

if not settings.jwt_secret_key or settings.jwt_secret_key in _insecure_keys or len(settings.jwt_secret_key) < 32:
    env = getattr(settings, "environment", "local") or "local"
    if env.lower() == "local":
        settings.jwt_secret_key = secrets.token_urlsafe(64)
        _dev_logger.warning("JWT_SECRET_KEY was missing/insecure; generated ephemeral key for local dev")
    else:
        raise RuntimeError("JWT_SECRET_KEY must be set to a secure value (32+ chars) in production")


def create_access_token(subject: UUID | str, expires_delta_minutes: int | None = None) -> str:
    expire_minutes = expires_delta_minutes or settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire, "jti": str(uuid4())}
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None


def actor_from_token(token: str) -> UUID | None:
    """Return the actor id carried by a valid token, or None."""
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        return UUID(str(payload.get("sub")))
    except (TypeError, ValueError):
        return None
