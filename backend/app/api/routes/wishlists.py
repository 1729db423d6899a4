from typing import Any
from uuid import UUID
import logging

from fastapi import APIRouter, Query, Response, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ActorDep, DbSessionDep, require_profile
from app.core.config import settings
from app.core.exceptions import NotFound, ValidationFailed
from app.core.projection import load_items, project_owner_item
from app.core.reservations import load_item, owner_status_change
from app.core.shares import get_owned_wishlist, list_shares
from app.models.models import Category, SharedWishlist, Wishlist, WishlistItem
from app.schemas.wishlist import (
    ItemCreate,
    ItemUpdate,
    OwnerItem,
    SharePublic,
    ShareSummary,
    WishlistCreate,
    WishlistDetail,
    WishlistPublic,
    WishlistSummary,
    WishlistUpdate,
)

logger = logging.getLogger("giftlink.wishlists")

router = APIRouter(prefix="/wishlists", tags=["wishlists"])

_NON_NULLABLE_ITEM_FIELDS = ("name", "currency", "priority", "status")


def _reject_nulls(changes: dict[str, Any], fields: tuple[str, ...]) -> None:
    errors = [
        {"loc": ["body", name], "msg": "Field may not be null"}
        for name in fields
        if name in changes and changes[name] is None
    ]
    if errors:
        raise ValidationFailed(errors)


def _url_to_str(changes: dict[str, Any]) -> dict[str, Any]:
    for key in ("image_url", "external_link"):
        if changes.get(key) is not None:
            changes[key] = str(changes[key])
    return changes


async def _check_category(db: AsyncSession, category_id: UUID | None, actor_id: UUID) -> None:
    if category_id is None:
        return
    result = await db.execute(
        select(Category.id).where(Category.id == category_id, Category.owner_id == actor_id)
    )
    if result.scalar_one_or_none() is None:
        raise ValidationFailed.for_field("category_id", "Unknown category")


def _wishlist_public(wishlist: Wishlist) -> WishlistPublic:
    return WishlistPublic.model_validate(wishlist)


@router.get("", response_model=list[WishlistSummary])
async def list_my_wishlists(db: DbSessionDep, actor_id: ActorDep) -> list[WishlistSummary]:
    result = await db.execute(
        select(Wishlist)
        .where(Wishlist.owner_id == actor_id)
        .order_by(Wishlist.created_at.desc())
    )
    wishlists = list(result.scalars())
    if not wishlists:
        return []

    ids = [w.id for w in wishlists]
    counts_result = await db.execute(
        select(WishlistItem.wishlist_id, func.count(WishlistItem.id))
        .where(WishlistItem.wishlist_id.in_(ids))
        .group_by(WishlistItem.wishlist_id)
    )
    counts = {row[0]: int(row[1]) for row in counts_result.all()}

    shares_result = await db.execute(
        select(SharedWishlist.wishlist_id, SharedWishlist.share_token, SharedWishlist.is_active)
        .where(SharedWishlist.wishlist_id.in_(ids))
    )
    shares: dict[UUID, list[ShareSummary]] = {}
    for wishlist_id, token, is_active in shares_result.all():
        shares.setdefault(wishlist_id, []).append(ShareSummary(share_token=token, is_active=is_active))

    return [
        WishlistSummary(
            **_wishlist_public(w).model_dump(),
            item_count=counts.get(w.id, 0),
            shares=shares.get(w.id, []),
        )
        for w in wishlists
    ]


@router.post("", response_model=WishlistPublic, status_code=status.HTTP_201_CREATED)
async def create_wishlist(
    payload: WishlistCreate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> WishlistPublic:
    await require_profile(db, actor_id)
    wishlist = Wishlist(
        owner_id=actor_id,
        name=payload.name,
        description=payload.description,
        surprise_mode=payload.surprise_mode,
    )
    db.add(wishlist)
    await db.commit()
    await db.refresh(wishlist)
    logger.info("Wishlist created id=%s owner=%s", wishlist.id, actor_id)
    return _wishlist_public(wishlist)


@router.get("/{wishlist_id}", response_model=WishlistDetail, response_model_exclude_unset=True)
async def get_wishlist(wishlist_id: UUID, db: DbSessionDep, actor_id: ActorDep) -> WishlistDetail:
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    items = await load_items(db, wishlist.id)
    shares = await list_shares(db, wishlist.id)
    return WishlistDetail(
        **_wishlist_public(wishlist).model_dump(),
        items=[project_owner_item(item, wishlist.surprise_mode) for item in items],
        shares=[SharePublic.model_validate(share) for share in shares],
    )


@router.patch("/{wishlist_id}", response_model=WishlistPublic)
async def update_wishlist(
    wishlist_id: UUID,
    payload: WishlistUpdate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> WishlistPublic:
    changes = payload.model_dump(exclude_unset=True)
    _reject_nulls(changes, ("name", "surprise_mode"))
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    for key, value in changes.items():
        setattr(wishlist, key, value)
    await db.commit()
    await db.refresh(wishlist)
    logger.info("Wishlist updated id=%s fields=%s", wishlist.id, sorted(changes))
    return _wishlist_public(wishlist)


@router.delete("/{wishlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_wishlist(wishlist_id: UUID, db: DbSessionDep, actor_id: ActorDep) -> Response:
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    await db.execute(delete(WishlistItem).where(WishlistItem.wishlist_id == wishlist.id))
    await db.execute(delete(SharedWishlist).where(SharedWishlist.wishlist_id == wishlist.id))
    await db.delete(wishlist)
    await db.commit()
    logger.info("Wishlist deleted id=%s owner=%s", wishlist_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{wishlist_id}/items", response_model=list[OwnerItem], response_model_exclude_unset=True)
async def list_items(wishlist_id: UUID, db: DbSessionDep, actor_id: ActorDep) -> list[OwnerItem]:
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    items = await load_items(db, wishlist.id)
    return [project_owner_item(item, wishlist.surprise_mode) for item in items]


@router.post(
    "/{wishlist_id}/items",
    response_model=OwnerItem,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_item(
    wishlist_id: UUID,
    payload: ItemCreate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> OwnerItem:
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    await _check_category(db, payload.category_id, actor_id)

    values = _url_to_str(payload.model_dump())
    values["currency"] = values.get("currency") or settings.default_currency
    item = WishlistItem(wishlist_id=wishlist.id, **values)
    db.add(item)
    await db.commit()
    item = await load_item(db, item.id, wishlist.id)
    logger.info("Item created id=%s wishlist=%s", item.id, wishlist.id)
    return project_owner_item(item, wishlist.surprise_mode)


@router.patch("/{wishlist_id}/items", response_model=OwnerItem, response_model_exclude_unset=True)
async def update_item(
    wishlist_id: UUID,
    payload: ItemUpdate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> OwnerItem:
    changes = _url_to_str(payload.model_dump(exclude_unset=True, exclude={"item_id"}))
    _reject_nulls(changes, _NON_NULLABLE_ITEM_FIELDS)

    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    item = await load_item(db, payload.item_id, wishlist.id)
    if item is None:
        raise NotFound("Item not found")
    if "category_id" in changes:
        await _check_category(db, changes["category_id"], actor_id)

    new_status = changes.pop("status", None)
    if new_status is not None:
        status_values = owner_status_change(item, new_status)
        if status_values is None:
            raise ValidationFailed.for_field(
                "status", "Items can only become reserved through a share link"
            )
        changes.update(status_values)

    for key, value in changes.items():
        setattr(item, key, value)
    await db.commit()
    item = await load_item(db, item.id, wishlist.id)
    logger.info("Item updated id=%s wishlist=%s fields=%s", item.id, wishlist.id, sorted(changes))
    return project_owner_item(item, wishlist.surprise_mode)


@router.delete("/{wishlist_id}/items", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    wishlist_id: UUID,
    db: DbSessionDep,
    actor_id: ActorDep,
    item_id: UUID = Query(alias="itemId"),
) -> Response:
    wishlist = await get_owned_wishlist(db, wishlist_id, actor_id)
    result = await db.execute(
        delete(WishlistItem).where(
            WishlistItem.id == item_id,
            WishlistItem.wishlist_id == wishlist.id,
        )
    )
    await db.commit()
    if result.rowcount == 0:
        raise NotFound("Item not found")
    logger.info("Item deleted id=%s wishlist=%s", item_id, wishlist.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
