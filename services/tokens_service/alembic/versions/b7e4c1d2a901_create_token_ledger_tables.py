"""create_token_ledger_tables

Revision ID: b7e4c1d2a901
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "b7e4c1d2a901"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLE = sa.Enum("business", "influencer", name="user_role_enum")
TRANSACTION_TYPE = sa.Enum(
    "purchase",
    "spend",
    "adjustment",
    "refund",
    "bonus",
    name="token_transaction_type_enum",
)
CONFIRMATION_STATUS = sa.Enum(
    "completed", "failed", name="payment_confirmation_status_enum"
)
NOTIFICATION_TYPE = sa.Enum(
    "token_update",
    "payment",
    "campaign_invite",
    "contact",
    "system",
    name="notification_type_enum",
)
CAMPAIGN_STATUS = sa.Enum(
    "draft", "active", "paused", "completed", name="campaign_status_enum"
)


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)
        )
    return columns


def _profile_table(name: str, *display_columns: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        *display_columns,
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("tokens", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("tokens >= 0", name=f"ck_{name}_tokens_non_negative"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=f"fk_{name}_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=f"pk_{name}"),
        sa.UniqueConstraint("user_id", name=f"uq_{name}_user_id"),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("role", USER_ROLE, nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )

    _profile_table(
        "business_profiles",
        sa.Column("company_name", sa.String(length=200), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
    )
    _profile_table(
        "influencer_profiles",
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("niche", sa.String(length=100), nullable=True),
    )

    op.create_table(
        "token_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("transaction_type", TRANSACTION_TYPE, nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("related_entity_type", sa.String(length=50), nullable=True),
        sa.Column("related_entity_id", sa.String(length=128), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint(
            "amount <> 0", name="ck_token_transactions_amount_non_zero"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_token_transactions_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_token_transactions"),
        sa.UniqueConstraint(
            "idempotency_key", name="uq_token_transactions_idempotency_key"
        ),
    )
    op.create_index(
        "ix_token_transactions_user_created",
        "token_transactions",
        ["user_id", "created_at"],
    )

    op.create_table(
        "payment_confirmations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("package_id", sa.String(length=50), nullable=False),
        sa.Column("tokens", sa.Integer(), nullable=False),
        sa.Column("amount_total", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=10), nullable=True),
        sa.Column("status", CONFIRMATION_STATUS, nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.Uuid(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_payment_confirmations_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["token_transactions.id"],
            name="fk_payment_confirmations_transaction_id_token_transactions",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_payment_confirmations"),
        sa.UniqueConstraint("session_id", name="uq_payment_confirmations_session_id"),
    )
    op.create_index(
        "ix_payment_confirmations_user_id", "payment_confirmations", ["user_id"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", NOTIFICATION_TYPE, nullable=False),
        sa.Column("related_id", sa.String(length=128), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notifications_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"]
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("custom_id", sa.String(length=8), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("budget", sa.Integer(), nullable=True),
        sa.Column("status", CAMPAIGN_STATUS, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["business_id"],
            ["business_profiles.id"],
            name="fk_campaigns_business_id_business_profiles",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_campaigns"),
        sa.UniqueConstraint("custom_id", name="uq_campaigns_custom_id"),
    )
    op.create_index("ix_campaigns_business_id", "campaigns", ["business_id"])


def downgrade() -> None:
    op.drop_index("ix_campaigns_business_id", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(
        "ix_payment_confirmations_user_id", table_name="payment_confirmations"
    )
    op.drop_table("payment_confirmations")
    op.drop_index(
        "ix_token_transactions_user_created", table_name="token_transactions"
    )
    op.drop_table("token_transactions")
    op.drop_table("influencer_profiles")
    op.drop_table("business_profiles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        CAMPAIGN_STATUS,
        NOTIFICATION_TYPE,
        CONFIRMATION_STATUS,
        TRANSACTION_TYPE,
        USER_ROLE,
    ):
        enum.drop(bind, checkfirst=True)
