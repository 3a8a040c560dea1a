"""Token Service schemas package.

Re-exports all schemas so routers import from one place.
When adding a new schema, add its import and __all__ entry.
"""

from services.tokens_service.schemas.balance import (  # noqa: F401
    BalanceResponse,
    LedgerBalanceResponse,
)
from services.tokens_service.schemas.campaign import (  # noqa: F401
    CampaignCreateRequest,
    CampaignCreateResponse,
    CampaignResponse,
)
from services.tokens_service.schemas.checkout import (  # noqa: F401
    CheckoutRequest,
    CheckoutResponse,
    ConfirmationResponse,
    PackageListResponse,
    PackageResponse,
    WebhookAck,
)
from services.tokens_service.schemas.notification import (  # noqa: F401
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from services.tokens_service.schemas.profile import (  # noqa: F401
    ProfileCreateRequest,
    ProfileResponse,
)
from services.tokens_service.schemas.transaction import (  # noqa: F401
    SpendRequest,
    SpendResponse,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    # Balance
    "BalanceResponse",
    "LedgerBalanceResponse",
    # Transaction
    "SpendRequest",
    "SpendResponse",
    "TransactionListResponse",
    "TransactionResponse",
    # Checkout
    "CheckoutRequest",
    "CheckoutResponse",
    "ConfirmationResponse",
    "PackageListResponse",
    "PackageResponse",
    "WebhookAck",
    # Notification
    "MarkAllReadResponse",
    "NotificationListResponse",
    "NotificationResponse",
    # Profile
    "ProfileCreateRequest",
    "ProfileResponse",
    # Campaign
    "CampaignCreateRequest",
    "CampaignCreateResponse",
    "CampaignResponse",
]
