"""Campaign creation endpoint."""

from fastapi import APIRouter, status
from services.tokens_service.dependencies import (
    AppSettings,
    NotifierDep,
    RegisteredUser,
    ServiceDB,
)
from services.tokens_service.models import ProfileKind
from services.tokens_service.schemas import (
    CampaignCreateRequest,
    CampaignCreateResponse,
    CampaignResponse,
)
from services.tokens_service.services.campaign_service import create_campaign
from services.tokens_service.services.ledger_ops import get_balance

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.post(
    "", response_model=CampaignCreateResponse, status_code=status.HTTP_201_CREATED
)
async def create_new_campaign(
    body: CampaignCreateRequest,
    current_user: RegisteredUser,
    db: ServiceDB,
    settings: AppSettings,
    notifier: NotifierDep,
):
    """Create a campaign for the caller's business, charging CAMPAIGN_CREATION_COST."""
    campaign, txn = await create_campaign(
        db,
        user_id=current_user.user_id,
        title=body.title,
        description=body.description,
        budget=body.budget,
        status=body.status,
        cost=settings.CAMPAIGN_CREATION_COST,
        notifier=notifier,
    )
    balance = (
        txn.balance_after
        if txn is not None
        else await get_balance(db, current_user.user_id, ProfileKind.BUSINESS)
    )
    return CampaignCreateResponse(
        campaign=CampaignResponse.model_validate(campaign),
        tokens_spent=-txn.amount if txn is not None else 0,
        token_balance=balance,
    )
