from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from app.models.models import ItemStatusEnum


Priority = Literal[0, 1, 2]


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class WishlistCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    surprise_mode: bool = False

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value

    @field_validator("description")
    @classmethod
    def _description_strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class WishlistUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    surprise_mode: bool | None = None

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value

    @field_validator("description")
    @classmethod
    def _description_strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class ItemBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    image_url: HttpUrl | None = None
    price: float | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    external_link: HttpUrl | None = None
    priority: Priority = 1
    category_id: UUID | None = None
    notes: str | None = None

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value

    @field_validator("currency")
    @classmethod
    def _currency_upper(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    item_id: UUID = Field(alias="itemId")
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    image_url: HttpUrl | None = None
    price: float | None = Field(default=None, gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    external_link: HttpUrl | None = None
    priority: Priority | None = None
    category_id: UUID | None = None
    notes: str | None = None
    status: ItemStatusEnum | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value

    @field_validator("currency")
    @classmethod
    def _currency_upper(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class CategoryBrief(BaseModel):
    name: str
    icon: str | None
    color: str


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    icon: str | None = Field(default=None, max_length=32)
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str) -> str:
        return value.strip()


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    icon: str | None = Field(default=None, max_length=32)
    color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    sort_order: int | None = None


class CategoryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    icon: str | None
    color: str
    sort_order: int
    created_at: datetime


class OwnerItem(BaseModel):
    """Item as returned to the wishlist owner.

    ``reserved_by`` is left unset in surprise mode and the owner routes dump
    with ``exclude_unset`` so the key never appears.
    """

    id: UUID
    wishlist_id: UUID
    category_id: UUID | None
    category: CategoryBrief | None
    name: str
    description: str | None
    image_url: str | None
    price: float | None
    currency: str
    external_link: str | None
    priority: int
    status: ItemStatusEnum
    reserved_by: UUID | None = None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class ShareCreate(BaseModel):
    wishlist_id: UUID
    expires_at: datetime | None = None


class SharePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    wishlist_id: UUID
    share_token: str
    created_by: UUID
    is_active: bool
    expires_at: datetime | None
    created_at: datetime


class ShareSummary(BaseModel):
    share_token: str
    is_active: bool


class WishlistPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    description: str | None
    surprise_mode: bool
    created_at: datetime
    updated_at: datetime


class WishlistSummary(WishlistPublic):
    item_count: int
    shares: list[ShareSummary]


class WishlistDetail(WishlistPublic):
    items: list[OwnerItem]
    shares: list[SharePublic]


class ReservationAction(BaseModel):
    item_id: UUID = Field(alias="itemId")
    action: Literal["reserve", "unreserve"]

    model_config = ConfigDict(populate_by_name=True)


class PublicOwner(BaseModel):
    username: str
    full_name: str | None
    avatar_url: str | None


class PublicItem(BaseModel):
    """Item as seen through a share link. Carries no reservation identity."""

    id: UUID
    name: str
    description: str | None
    image_url: str | None
    price: float | None
    currency: str
    external_link: str | None
    priority: int
    status: ItemStatusEnum
    category: CategoryBrief | None


class PublicWishlistView(BaseModel):
    id: UUID
    name: str
    description: str | None
    surprise_mode: bool
    owner: PublicOwner
    items: list[PublicItem]
