from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


def _normalize_full_name(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class ProfileCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    full_name: str | None = Field(default=None, max_length=255)
    avatar_url: HttpUrl | None = None

    @field_validator("full_name")
    @classmethod
    def _full_name_strip(cls, value: str | None) -> str | None:
        return _normalize_full_name(value)


class ProfileUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    full_name: str | None = Field(default=None, max_length=255)
    avatar_url: HttpUrl | None = None

    @field_validator("full_name")
    @classmethod
    def _full_name_strip(cls, value: str | None) -> str | None:
        return _normalize_full_name(value)


class ProfilePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    full_name: str | None
    avatar_url: str | None
    created_at: datetime
    updated_at: datetime
