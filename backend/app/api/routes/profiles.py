import logging

from fastapi import APIRouter, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ActorDep, DbSessionDep
from app.core.exceptions import Conflict, NotFound, ValidationFailed
from app.models.models import Profile
from app.schemas.profile import ProfileCreate, ProfilePublic, ProfileUpdate

logger = logging.getLogger("giftlink.profiles")

router = APIRouter(prefix="/profiles", tags=["profiles"])


async def _commit_profile(db: AsyncSession, profile: Profile) -> Profile:
    # The unique index on username is the source of truth for duplicates.
    profile_id, username = profile.id, profile.username
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Profile write conflict id=%s username=%s", profile_id, username)
        raise Conflict("Username is already taken") from None
    await db.refresh(profile)
    return profile


@router.post("", response_model=ProfilePublic, status_code=status.HTTP_201_CREATED)
async def create_profile(payload: ProfileCreate, db: DbSessionDep, actor_id: ActorDep) -> Profile:
    if await db.get(Profile, actor_id) is not None:
        raise Conflict("Profile already exists")
    profile = Profile(
        id=actor_id,
        username=payload.username,
        full_name=payload.full_name,
        avatar_url=str(payload.avatar_url) if payload.avatar_url else None,
    )
    db.add(profile)
    profile = await _commit_profile(db, profile)
    logger.info("Profile created id=%s", profile.id)
    return profile


@router.get("/me", response_model=ProfilePublic)
async def get_my_profile(db: DbSessionDep, actor_id: ActorDep) -> Profile:
    profile = await db.get(Profile, actor_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


@router.patch("/me", response_model=ProfilePublic)
async def update_my_profile(payload: ProfileUpdate, db: DbSessionDep, actor_id: ActorDep) -> Profile:
    changes = payload.model_dump(exclude_unset=True)
    if "username" in changes and changes["username"] is None:
        raise ValidationFailed.for_field("username", "Field may not be null")
    if changes.get("avatar_url") is not None:
        changes["avatar_url"] = str(changes["avatar_url"])

    profile = await db.get(Profile, actor_id)
    if profile is None:
        raise NotFound("Profile not found")
    for key, value in changes.items():
        setattr(profile, key, value)
    return await _commit_profile(db, profile)
