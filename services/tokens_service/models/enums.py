"""Enums for the Token Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    BUSINESS = "business"
    INFLUENCER = "influencer"


class ProfileKind(str, enum.Enum):
    """Which role-specific profile holds a user's balance."""

    BUSINESS = "business"
    INFLUENCER = "influencer"

    @classmethod
    def for_role(cls, role: "UserRole") -> "ProfileKind":
        return cls(role.value)


class TransactionType(str, enum.Enum):
    PURCHASE = "purchase"
    SPEND = "spend"
    ADJUSTMENT = "adjustment"
    REFUND = "refund"
    BONUS = "bonus"


class ConfirmationStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, enum.Enum):
    TOKEN_UPDATE = "token_update"
    PAYMENT = "payment"
    CAMPAIGN_INVITE = "campaign_invite"
    CONTACT = "contact"
    SYSTEM = "system"


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
