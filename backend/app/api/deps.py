from typing import Annotated
from uuid import UUID
import logging

from fastapi import Cookie, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Conflict, Unauthenticated
from app.core.logger import scrub_path
from app.core.security import actor_from_token
from app.db.session import get_db
from app.models.models import Profile


DbSessionDep = Annotated[AsyncSession, Depends(get_db)]
logger = logging.getLogger("giftlink.auth")


def _extract_token(request: Request, access_token: str | None) -> str | None:
    if access_token:
        return access_token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ").strip() or None
    return None


async def get_current_actor(
    request: Request,
    access_token: str | None = Cookie(default=None, alias="access_token"),
) -> UUID:
    token = _extract_token(request, access_token)
    if not token:
        logger.info(
            "Auth token missing path=%s ip=%s",
            scrub_path(request.url.path),
            request.client.host if request.client else None,
        )
        raise Unauthenticated()

    actor_id = actor_from_token(token)
    if actor_id is None:
        logger.info("Auth token invalid path=%s", scrub_path(request.url.path))
        raise Unauthenticated("Invalid token")

    logger.debug("Authenticated actor=%s path=%s", actor_id, scrub_path(request.url.path))
    return actor_id


ActorDep = Annotated[UUID, Depends(get_current_actor)]


async def require_profile(db: AsyncSession, actor_id: UUID) -> Profile:
    """Owned rows reference profiles, so the actor needs one before creating them."""
    profile = await db.get(Profile, actor_id)
    if profile is None:
        raise Conflict("Create a profile first")
    return profile
