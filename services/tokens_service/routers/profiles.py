"""Role profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from libs.common.errors import NotFound
from libs.db.session import get_read_db
from services.tokens_service.dependencies import RegisteredUser, ServiceDB
from services.tokens_service.models import ProfileKind
from services.tokens_service.schemas import ProfileCreateRequest, ProfileResponse
from services.tokens_service.services.ledger_ops import get_balance
from services.tokens_service.services.profile_service import (
    Profile,
    ensure_profile,
    get_profile,
    resolve_profile_kind,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/profiles", tags=["profiles"])


def _to_response(profile: Profile, kind: ProfileKind, balance: int, created: bool):
    name = (
        profile.company_name if kind == ProfileKind.BUSINESS else profile.display_name
    )
    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        kind=kind,
        name=name,
        token_balance=balance,
        created=created,
    )


@router.post("", response_model=ProfileResponse)
async def create_profile(
    body: ProfileCreateRequest, current_user: RegisteredUser, db: ServiceDB
):
    """Create the caller's profile for a role, or return the existing one."""
    profile, created = await ensure_profile(
        db,
        user_id=current_user.user_id,
        kind=body.kind,
        email=current_user.email,
        email_verified=current_user.email_verified,
        **body.model_dump(exclude={"kind"}, exclude_none=True),
    )
    balance = await get_balance(db, current_user.user_id, body.kind)
    return _to_response(profile, body.kind, balance, created)


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: RegisteredUser,
    db: Annotated[AsyncSession, Depends(get_read_db)],
):
    kind = await resolve_profile_kind(db, current_user.user_id)
    profile = await get_profile(db, current_user.user_id, kind) if kind else None
    if profile is None:
        raise NotFound("Profile not found")
    balance = await get_balance(db, current_user.user_id, kind)
    return _to_response(profile, kind, balance, created=False)
