"""Campaign creation, optionally paid for with tokens."""

import random
from typing import Optional

from libs.common.errors import NotFound
from libs.common.logging import get_logger
from services.tokens_service.models import (
    Campaign,
    CampaignStatus,
    ProfileKind,
    TokenTransaction,
)
from services.tokens_service.services.ledger_ops import apply_debit
from services.tokens_service.services.notifier import Notifier
from services.tokens_service.services.profile_service import get_profile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# No 0/1/l/o to keep ids readable when typed by hand
CUSTOM_ID_ALPHABET = "23456789abcdefghijkmnpqrstuvwxyz"
CUSTOM_ID_LENGTH = 8
MAX_ID_ATTEMPTS = 5


def generate_custom_id() -> str:
    """Generate a short campaign id like ``k7m2x9qa``."""
    return "".join(random.choices(CUSTOM_ID_ALPHABET, k=CUSTOM_ID_LENGTH))


async def create_campaign(
    db: AsyncSession,
    *,
    user_id: str,
    title: str,
    description: Optional[str] = None,
    budget: Optional[int] = None,
    status: CampaignStatus = CampaignStatus.DRAFT,
    cost: int = 0,
    notifier: Optional[Notifier] = None,
) -> tuple[Campaign, Optional[TokenTransaction]]:
    """Create a campaign owned by the user's business profile.

    When ``cost`` is positive the tokens are debited in the same transaction
    as the insert, so a campaign is never created without being paid for.
    """
    business = await get_profile(db, user_id, ProfileKind.BUSINESS)
    if business is None:
        raise NotFound("Business profile not found")
    business_id = business.id

    for attempt in range(1, MAX_ID_ATTEMPTS + 1):
        campaign = Campaign(
            custom_id=generate_custom_id(),
            business_id=business_id,
            title=title,
            description=description,
            budget=budget,
            status=status,
        )
        db.add(campaign)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.info("custom_id collision on attempt %d, retrying", attempt)
            continue

        txn = None
        if cost > 0:
            txn = await apply_debit(
                db,
                user_id=user_id,
                amount=cost,
                description=f"Created campaign: {title}",
                kind=ProfileKind.BUSINESS,
                related_entity_type="campaign",
                related_entity_id=str(campaign.id),
            )
        await db.commit()
        await db.refresh(campaign)
        break
    else:
        raise RuntimeError("Could not allocate a unique campaign id")

    logger.info(
        "Created campaign %s (%s) for business %s", campaign.custom_id, campaign.id, business_id
    )
    if txn is not None and notifier is not None:
        await notifier.tokens_spent(
            user_id=user_id,
            amount=cost,
            description=txn.description,
            related_id=str(txn.id),
        )
    return campaign, txn

