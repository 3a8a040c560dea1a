"""User and role-profile resolution.

Creation is idempotent: two requests racing to create the same row both
succeed, the loser reading back the winner's row after its insert hits the
unique constraint.
"""

from typing import Optional, Union

from libs.common.logging import get_logger
from services.tokens_service.models import (
    BusinessProfile,
    InfluencerProfile,
    ProfileKind,
    User,
    UserRole,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

Profile = Union[BusinessProfile, InfluencerProfile]

PROFILE_MODELS: dict[ProfileKind, type] = {
    ProfileKind.BUSINESS: BusinessProfile,
    ProfileKind.INFLUENCER: InfluencerProfile,
}

# Fields a caller may set when creating each kind of profile
PROFILE_FIELDS: dict[ProfileKind, tuple[str, ...]] = {
    ProfileKind.BUSINESS: ("company_name", "website", "bio"),
    ProfileKind.INFLUENCER: ("display_name", "niche", "bio"),
}


def profile_model(kind: ProfileKind) -> type:
    return PROFILE_MODELS[kind]


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def ensure_user(
    db: AsyncSession,
    *,
    user_id: str,
    email: Optional[str] = None,
    email_verified: bool = False,
) -> User:
    """Return the user row for ``user_id``, creating it on first sight."""
    user = await get_user(db, user_id)
    if user is not None:
        if email_verified and not user.email_verified:
            user.email_verified = True
            await db.commit()
        return user

    user = User(id=user_id, email=email, email_verified=email_verified)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        user = await get_user(db, user_id)
        if user is None:
            raise
        logger.info("User %s created concurrently, using existing row", user_id)
        return user

    logger.info("Created user %s", user_id)
    return user


async def get_profile(
    db: AsyncSession, user_id: str, kind: ProfileKind
) -> Optional[Profile]:
    model = profile_model(kind)
    result = await db.execute(select(model).where(model.user_id == user_id))
    return result.scalar_one_or_none()


async def resolve_profile_kind(
    db: AsyncSession, user_id: str
) -> Optional[ProfileKind]:
    """Pick the profile that holds ``user_id``'s balance.

    The user's chosen role wins; without one, an existing business profile
    is preferred over an influencer profile. Returns None when the user has
    no profile at all.
    """
    user = await get_user(db, user_id)
    if user is not None and user.role is not None:
        return ProfileKind.for_role(user.role)

    for kind in (ProfileKind.BUSINESS, ProfileKind.INFLUENCER):
        model = profile_model(kind)
        result = await db.execute(select(model.id).where(model.user_id == user_id))
        if result.scalar_one_or_none() is not None:
            return kind
    return None


async def ensure_profile(
    db: AsyncSession,
    *,
    user_id: str,
    kind: ProfileKind,
    email: Optional[str] = None,
    email_verified: bool = False,
    **fields: Optional[str],
) -> tuple[Profile, bool]:
    """Create-or-get the ``kind`` profile for a user.

    Returns ``(profile, created)``. Also records the role on the user row if
    the user has not chosen one yet, in the same commit as the new profile.
    """
    user = await ensure_user(
        db, user_id=user_id, email=email, email_verified=email_verified
    )
    existing = await get_profile(db, user_id, kind)
    if existing is not None:
        if user.role is None:
            user.role = UserRole(kind.value)
            await db.commit()
        return existing, False

    if user.role is None:
        user.role = UserRole(kind.value)
    allowed = PROFILE_FIELDS[kind]
    values = {name: value for name, value in fields.items() if name in allowed}
    profile = profile_model(kind)(user_id=user_id, tokens=0, **values)
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_profile(db, user_id, kind)
        if existing is None:
            raise
        logger.info(
            "%s profile for %s created concurrently, using existing row",
            kind.value,
            user_id,
        )
        return existing, False
    except Exception:
        await db.rollback()
        raise

    await db.refresh(profile)
    logger.info("Created %s profile %s for user %s", kind.value, profile.id, user_id)
    return profile, True
