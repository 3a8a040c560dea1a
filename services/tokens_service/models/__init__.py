"""Token Service models package.

Re-exports all models and enums so that Alembic's env.py and SQLAlchemy's
mapper registry see every model class on import.

When adding a new model, add both its import and its __all__ entry.
"""

from services.tokens_service.models.campaign import Campaign  # noqa: F401
from services.tokens_service.models.confirmation import (  # noqa: F401
    PaymentConfirmation,
)
from services.tokens_service.models.enums import (  # noqa: F401
    CampaignStatus,
    ConfirmationStatus,
    NotificationType,
    ProfileKind,
    TransactionType,
    UserRole,
)
from services.tokens_service.models.notification import Notification  # noqa: F401
from services.tokens_service.models.transaction import TokenTransaction  # noqa: F401
from services.tokens_service.models.user import (  # noqa: F401
    BusinessProfile,
    InfluencerProfile,
    User,
)

__all__ = [
    # Enums
    "CampaignStatus",
    "ConfirmationStatus",
    "NotificationType",
    "ProfileKind",
    "TransactionType",
    "UserRole",
    # Users & profiles
    "User",
    "BusinessProfile",
    "InfluencerProfile",
    # Ledger
    "TokenTransaction",
    "PaymentConfirmation",
    # Notifications
    "Notification",
    # Campaigns
    "Campaign",
]
