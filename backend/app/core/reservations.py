"""Reservation state machine for wishlist items.

    available --reserve--> reserved --unreserve--> available
    reserved --(owner edit)--> purchased

Every transition here is a single predicate-qualified UPDATE. Whether it
applied is read from the matched row count, so two racing reservations on
the same item can never both win.
"""

from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import TransitionRejected
from app.models.models import ItemStatusEnum, WishlistItem, utcnow


logger = logging.getLogger("giftlink.reservations")


async def load_item(db: AsyncSession, item_id: UUID, wishlist_id: UUID) -> WishlistItem | None:
    result = await db.execute(
        select(WishlistItem)
        .where(WishlistItem.id == item_id, WishlistItem.wishlist_id == wishlist_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _apply_transition(db: AsyncSession, stmt, item_id: UUID, wishlist_id: UUID) -> WishlistItem | None:
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        await db.rollback()
        return None
    await db.commit()
    return await load_item(db, item_id, wishlist_id)


async def reserve_item(
    db: AsyncSession,
    item_id: UUID,
    wishlist_id: UUID,
    actor_id: UUID,
) -> WishlistItem:
    stmt = (
        update(WishlistItem)
        .where(
            WishlistItem.id == item_id,
            WishlistItem.wishlist_id == wishlist_id,
            WishlistItem.status == ItemStatusEnum.AVAILABLE.value,
        )
        .values(
            status=ItemStatusEnum.RESERVED.value,
            reserved_by=actor_id,
            updated_at=utcnow(),
        )
    )
    item = await _apply_transition(db, stmt, item_id, wishlist_id)
    if item is None:
        logger.info("Reserve rejected item=%s wishlist=%s actor=%s", item_id, wishlist_id, actor_id)
        raise TransitionRejected("Could not reserve this item")
    logger.info("Item reserved item=%s wishlist=%s actor=%s", item_id, wishlist_id, actor_id)
    return item


async def unreserve_item(
    db: AsyncSession,
    item_id: UUID,
    wishlist_id: UUID,
    actor_id: UUID,
) -> WishlistItem:
    stmt = (
        update(WishlistItem)
        .where(
            WishlistItem.id == item_id,
            WishlistItem.wishlist_id == wishlist_id,
            WishlistItem.status == ItemStatusEnum.RESERVED.value,
            WishlistItem.reserved_by == actor_id,
        )
        .values(
            status=ItemStatusEnum.AVAILABLE.value,
            reserved_by=None,
            updated_at=utcnow(),
        )
    )
    item = await _apply_transition(db, stmt, item_id, wishlist_id)
    if item is None:
        logger.info("Unreserve rejected item=%s wishlist=%s actor=%s", item_id, wishlist_id, actor_id)
        raise TransitionRejected("Could not cancel the reservation")
    logger.info("Reservation cancelled item=%s wishlist=%s actor=%s", item_id, wishlist_id, actor_id)
    return item


def owner_status_change(item: WishlistItem, new_status: ItemStatusEnum) -> dict[str, object] | None:
    """Column values for an owner's manual status edit, or None if not allowed.

    Owners may move an item to available or purchased at any time, which
    clears the reserver. ``reserved`` is only reachable through
    ``reserve_item``, so asking for it is a no-op on an already reserved item
    and refused otherwise.
    """
    if new_status == ItemStatusEnum.RESERVED:
        if item.status == ItemStatusEnum.RESERVED.value:
            return {}
        return None
    return {"status": new_status.value, "reserved_by": None}
