from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Category, ItemStatusEnum, Profile, Wishlist, WishlistItem
from app.schemas.wishlist import (
    CategoryBrief,
    OwnerItem,
    PublicItem,
    PublicOwner,
    PublicWishlistView,
)


FALLBACK_USERNAME = "user"


def _price(item: WishlistItem) -> float | None:
    return float(item.price) if item.price is not None else None


def _category_brief(category: Category | None) -> CategoryBrief | None:
    if category is None:
        return None
    return CategoryBrief(name=category.name, icon=category.icon, color=category.color)


def items_query(wishlist_id):
    """Default display order: high priority first, then oldest first."""
    return (
        select(WishlistItem)
        .where(WishlistItem.wishlist_id == wishlist_id)
        .order_by(WishlistItem.priority.desc(), WishlistItem.created_at.asc())
        .execution_options(populate_existing=True)
    )


async def load_items(db: AsyncSession, wishlist_id) -> list[WishlistItem]:
    result = await db.execute(items_query(wishlist_id))
    return list(result.scalars())


def project_public_item(item: WishlistItem) -> PublicItem:
    # reserved_by is not part of PublicItem; a reserved item still reads as reserved.
    return PublicItem(
        id=item.id,
        name=item.name,
        description=item.description,
        image_url=item.image_url,
        price=_price(item),
        currency=item.currency,
        external_link=item.external_link,
        priority=item.priority,
        status=ItemStatusEnum(item.status),
        category=_category_brief(item.category),
    )


def project_public_wishlist(
    wishlist: Wishlist,
    items: list[WishlistItem],
    owner: Profile | None,
) -> PublicWishlistView:
    return PublicWishlistView(
        id=wishlist.id,
        name=wishlist.name,
        description=wishlist.description,
        surprise_mode=wishlist.surprise_mode,
        owner=PublicOwner(
            username=owner.username if owner else FALLBACK_USERNAME,
            full_name=owner.full_name if owner else None,
            avatar_url=owner.avatar_url if owner else None,
        ),
        items=[project_public_item(item) for item in items],
    )


def project_owner_item(item: WishlistItem, surprise_mode: bool) -> OwnerItem:
    """Owner-facing item.

    In surprise mode ``reserved_by`` is never passed to the model, so owner
    routes (which dump with ``exclude_unset``) leave the key out entirely.
    """
    fields = dict(
        id=item.id,
        wishlist_id=item.wishlist_id,
        category_id=item.category_id,
        category=_category_brief(item.category),
        name=item.name,
        description=item.description,
        image_url=item.image_url,
        price=_price(item),
        currency=item.currency,
        external_link=item.external_link,
        priority=item.priority,
        status=ItemStatusEnum(item.status),
        notes=item.notes,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )
    if not surprise_mode:
        fields["reserved_by"] = item.reserved_by
    return OwnerItem(**fields)
