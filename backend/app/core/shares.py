"""Share links: capability tokens granting read and reserve access to a wishlist."""

from datetime import datetime, timezone
from uuid import UUID
import logging
import secrets

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import Conflict, LinkExpired, LinkInactive, LinkInvalid, NotFound, ValidationFailed
from app.models.models import SharedWishlist, Wishlist


logger = logging.getLogger("giftlink.shares")

MIN_TOKEN_BYTES = 16
MAX_TOKEN_BYTES = 64


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_share_token() -> str:
    nbytes = min(max(settings.share_token_bytes, MIN_TOKEN_BYTES), MAX_TOKEN_BYTES)
    return secrets.token_hex(nbytes)


def is_expired(share: SharedWishlist, now: datetime | None = None) -> bool:
    if share.expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(share.expires_at) < now


async def get_owned_wishlist(db: AsyncSession, wishlist_id: UUID, actor_id: UUID) -> Wishlist:
    result = await db.execute(
        select(Wishlist).where(Wishlist.id == wishlist_id, Wishlist.owner_id == actor_id)
    )
    wishlist = result.scalar_one_or_none()
    if wishlist is None:
        raise NotFound("Wishlist not found")
    return wishlist


async def create_share(
    db: AsyncSession,
    wishlist_id: UUID,
    actor_id: UUID,
    expires_at: datetime | None = None,
) -> SharedWishlist:
    if expires_at is not None:
        expires_at = as_utc(expires_at)
        if expires_at <= datetime.now(timezone.utc):
            raise ValidationFailed.for_field("expires_at", "Expiry must be in the future")

    await get_owned_wishlist(db, wishlist_id, actor_id)

    await db.execute(
        update(SharedWishlist)
        .where(
            SharedWishlist.wishlist_id == wishlist_id,
            SharedWishlist.created_by == actor_id,
            SharedWishlist.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    share = SharedWishlist(
        wishlist_id=wishlist_id,
        share_token=generate_share_token(),
        created_by=actor_id,
        is_active=True,
        expires_at=expires_at,
    )
    db.add(share)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Concurrent share creation wishlist=%s actor=%s", wishlist_id, actor_id)
        raise Conflict("Another share link was created at the same time") from None
    await db.refresh(share)
    logger.info("Share created share=%s wishlist=%s actor=%s", share.id, wishlist_id, actor_id)
    return share


async def revoke_share(db: AsyncSession, share_id: UUID, actor_id: UUID) -> None:
    """Deactivate a share created by ``actor_id``. Repeating it changes nothing."""
    result = await db.execute(
        update(SharedWishlist)
        .where(SharedWishlist.id == share_id, SharedWishlist.created_by == actor_id)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Share revoked share=%s actor=%s matched=%s", share_id, actor_id, result.rowcount)


async def resolve_share(db: AsyncSession, token: str) -> SharedWishlist:
    """Return the live share for ``token`` or raise the matching link error."""
    result = await db.execute(
        select(SharedWishlist)
        .where(SharedWishlist.share_token == token)
        .execution_options(populate_existing=True)
    )
    share = result.scalar_one_or_none()
    if share is None:
        raise LinkInvalid()
    if not share.is_active:
        raise LinkInactive()
    if is_expired(share):
        raise LinkExpired()
    return share


async def list_shares(db: AsyncSession, wishlist_id: UUID) -> list[SharedWishlist]:
    result = await db.execute(
        select(SharedWishlist)
        .where(SharedWishlist.wishlist_id == wishlist_id)
        .order_by(SharedWishlist.created_at.desc())
    )
    return list(result.scalars())
