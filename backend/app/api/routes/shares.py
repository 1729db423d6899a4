from uuid import UUID
import logging

from fastapi import APIRouter, Query, Request, Response, status

from app.api.deps import ActorDep, DbSessionDep
from app.core.config import settings
from app.core.exceptions import NotFound
from app.core.projection import load_items, project_public_item, project_public_wishlist
from app.core.rate_limit import check_rate_limit
from app.core.reservations import reserve_item, unreserve_item
from app.core.shares import create_share, resolve_share, revoke_share
from app.models.models import Profile, Wishlist
from app.schemas.wishlist import (
    PublicItem,
    PublicWishlistView,
    ReservationAction,
    ShareCreate,
    SharePublic,
)

logger = logging.getLogger("giftlink.shares")

router = APIRouter(prefix="/shares", tags=["shares"])


@router.post("", response_model=SharePublic, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    payload: ShareCreate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> SharePublic:
    share = await create_share(db, payload.wishlist_id, actor_id, payload.expires_at)
    return SharePublic.model_validate(share)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share_link(
    db: DbSessionDep,
    actor_id: ActorDep,
    share_id: UUID = Query(alias="id"),
) -> Response:
    await revoke_share(db, share_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{token}", response_model=PublicWishlistView)
async def get_shared_wishlist(token: str, db: DbSessionDep) -> PublicWishlistView:
    share = await resolve_share(db, token)
    wishlist = await db.get(Wishlist, share.wishlist_id)
    if wishlist is None:
        raise NotFound("Wishlist not found")
    items = await load_items(db, wishlist.id)
    owner = await db.get(Profile, wishlist.owner_id)
    logger.debug("Shared view wishlist=%s items=%d", wishlist.id, len(items))
    return project_public_wishlist(wishlist, items, owner)


@router.patch("/{token}", response_model=PublicItem)
async def change_reservation(
    token: str,
    request: Request,
    payload: ReservationAction,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> PublicItem:
    check_rate_limit(request, settings.rate_limit_reservation_requests, key_suffix=str(actor_id))
    share = await resolve_share(db, token)
    if payload.action == "reserve":
        item = await reserve_item(db, payload.item_id, share.wishlist_id, actor_id)
    else:
        item = await unreserve_item(db, payload.item_id, share.wishlist_id, actor_id)
    return project_public_item(item)
