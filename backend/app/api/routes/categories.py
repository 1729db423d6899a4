from uuid import UUID
import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ActorDep, DbSessionDep, require_profile
from app.core.exceptions import NotFound, ValidationFailed
from app.models.models import Category, WishlistItem
from app.schemas.wishlist import CategoryCreate, CategoryPublic, CategoryUpdate

logger = logging.getLogger("giftlink.categories")

router = APIRouter(prefix="/categories", tags=["categories"])


async def _get_owned_category(db: AsyncSession, category_id: UUID, actor_id: UUID) -> Category:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.owner_id == actor_id)
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFound("Category not found")
    return category


@router.get("", response_model=list[CategoryPublic])
async def list_categories(db: DbSessionDep, actor_id: ActorDep) -> list[Category]:
    result = await db.execute(
        select(Category)
        .where(Category.owner_id == actor_id)
        .order_by(Category.sort_order.asc(), Category.name.asc())
    )
    return list(result.scalars())


@router.post("", response_model=CategoryPublic, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> Category:
    await require_profile(db, actor_id)
    category = Category(owner_id=actor_id, **payload.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    logger.info("Category created id=%s owner=%s", category.id, actor_id)
    return category


@router.patch("/{category_id}", response_model=CategoryPublic)
async def update_category(
    category_id: UUID,
    payload: CategoryUpdate,
    db: DbSessionDep,
    actor_id: ActorDep,
) -> Category:
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "color", "sort_order"):
        if field in changes and changes[field] is None:
            raise ValidationFailed.for_field(field, "Field may not be null")
    category = await _get_owned_category(db, category_id, actor_id)
    for key, value in changes.items():
        setattr(category, key, value)
    await db.commit()
    await db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: UUID, db: DbSessionDep, actor_id: ActorDep) -> Response:
    category = await _get_owned_category(db, category_id, actor_id)
    # Items only reference categories; detach them rather than cascading.
    await db.execute(
        update(WishlistItem)
        .where(WishlistItem.category_id == category.id)
        .values(category_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(category)
    await db.commit()
    logger.info("Category deleted id=%s owner=%s", category_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
