"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("telegram_username", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=64), nullable=False),
        sa.Column("ton_wallet_address", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("telegram_username", name="uq_users_telegram_username"),
        sa.UniqueConstraint("ton_wallet_address", name="uq_users_ton_wallet_address"),
        sa.CheckConstraint("length(first_name) BETWEEN 1 AND 64", name="ck_users_first_name_length"),
    )

    op.create_table(
        "buddy_pairs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user1_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user2_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("initiated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_buddy_pairs_users"),
        sa.CheckConstraint("user1_id < user2_id", name="ck_buddy_pairs_ordered_users"),
        sa.CheckConstraint("status IN ('pending', 'active', 'dissolved')", name="ck_buddy_pairs_status"),
        sa.CheckConstraint(
            "initiated_by = user1_id OR initiated_by = user2_id", name="ck_buddy_pairs_initiator_in_pair"
        ),
    )
    op.create_index("ix_buddy_pairs_user1_status", "buddy_pairs", ["user1_id", "status"])
    op.create_index("ix_buddy_pairs_user2_status", "buddy_pairs", ["user2_id", "status"])

    op.create_table(
        "corgi_sightings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reporter_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("buddy_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("corgi_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("corgi_count BETWEEN 1 AND 100", name="ck_corgi_sightings_corgi_count_range"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'denied')", name="ck_corgi_sightings_status"),
        sa.CheckConstraint("reporter_id != buddy_id", name="ck_corgi_sightings_distinct_users"),
    )
    op.create_index(
        "uq_corgi_sightings_reporter_pending",
        "corgi_sightings",
        ["reporter_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index("ix_corgi_sightings_buddy_status", "corgi_sightings", ["buddy_id", "status"])
    op.create_index("ix_corgi_sightings_reporter_created", "corgi_sightings", ["reporter_id", "created_at"])

    op.create_table(
        "wishes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("creator_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("buddy_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("proposed_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchased_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.CheckConstraint("length(description) BETWEEN 1 AND 500", name="ck_wishes_description_length"),
        sa.CheckConstraint(
            "proposed_amount > 0 AND proposed_amount <= 1000", name="ck_wishes_proposed_amount_range"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'purchased')", name="ck_wishes_status"
        ),
    )
    op.create_index("ix_wishes_status", "wishes", ["status"])
    op.create_index("ix_wishes_creator", "wishes", ["creator_id"])
    op.create_index("ix_wishes_buddy_status", "wishes", ["buddy_id", "status"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("transaction_hash", sa.String(length=128), nullable=True),
        sa.Column("from_wallet", sa.String(length=128), nullable=False),
        sa.Column("to_wallet", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("transaction_type", sa.String(length=16), nullable=False),
        sa.Column("related_entity_id", sa.Integer(), nullable=True),
        sa.Column("related_entity_type", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("memo", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("broadcast_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("transaction_hash", name="uq_transactions_transaction_hash"),
        sa.CheckConstraint("from_wallet != to_wallet", name="ck_transactions_distinct_wallets"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint("transaction_type IN ('reward', 'purchase')", name="ck_transactions_transaction_type"),
        sa.CheckConstraint("status IN ('pending', 'completed', 'failed')", name="ck_transactions_status"),
        sa.CheckConstraint(
            "related_entity_type IS NULL OR related_entity_type IN ('corgi_sighting', 'wish')",
            name="ck_transactions_related_entity_type",
        ),
        sa.CheckConstraint("retry_count >= 0", name="ck_transactions_retry_count_non_negative"),
    )
    op.create_index(
        "uq_transactions_active_entity",
        "transactions",
        ["related_entity_id", "related_entity_type"],
        unique=True,
        sqlite_where=sa.text("status != 'failed'"),
        postgresql_where=sa.text("status != 'failed'"),
    )
    op.create_index("ix_transactions_status_created", "transactions", ["status", "created_at"])
    op.create_index("ix_transactions_user", "transactions", ["user_id"])
    op.create_index("ix_transactions_from_wallet", "transactions", ["from_wallet"])
    op.create_index("ix_transactions_to_wallet", "transactions", ["to_wallet"])

    op.create_table(
        "pending_rewards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "sighting_id", sa.Integer(), sa.ForeignKey("corgi_sightings.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="RESTRICT"), nullable=True
        ),
        sa.CheckConstraint("amount > 0", name="ck_pending_rewards_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'processed', 'cancelled')", name="ck_pending_rewards_status"
        ),
        sa.CheckConstraint(
            "status != 'pending' OR transaction_id IS NULL", name="ck_pending_rewards_pending_has_no_transaction"
        ),
        sa.CheckConstraint(
            "status != 'processed' OR transaction_id IS NOT NULL",
            name="ck_pending_rewards_processed_has_transaction",
        ),
    )
    op.create_index(
        "uq_pending_rewards_pending_sighting",
        "pending_rewards",
        ["sighting_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index("ix_pending_rewards_user_status", "pending_rewards", ["user_id", "status"])

    op.create_table(
        "bank_wallet",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("wallet_address", sa.String(length=128), nullable=False),
        sa.Column("current_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_distributed", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_transaction_hash", sa.String(length=128), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_bank_wallet_singleton"),
        sa.CheckConstraint("current_balance >= 0", name="ck_bank_wallet_balance_non_negative"),
        sa.CheckConstraint("total_distributed >= 0", name="ck_bank_wallet_distributed_non_negative"),
    )


def downgrade():
    op.drop_table("bank_wallet")
    op.drop_index("ix_pending_rewards_user_status", table_name="pending_rewards")
    op.drop_index("uq_pending_rewards_pending_sighting", table_name="pending_rewards")
    op.drop_table("pending_rewards")
    op.drop_index("ix_transactions_to_wallet", table_name="transactions")
    op.drop_index("ix_transactions_from_wallet", table_name="transactions")
    op.drop_index("ix_transactions_user", table_name="transactions")
    op.drop_index("ix_transactions_status_created", table_name="transactions")
    op.drop_index("uq_transactions_active_entity", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_wishes_buddy_status", table_name="wishes")
    op.drop_index("ix_wishes_creator", table_name="wishes")
    op.drop_index("ix_wishes_status", table_name="wishes")
    op.drop_table("wishes")
    op.drop_index("ix_corgi_sightings_reporter_created", table_name="corgi_sightings")
    op.drop_index("ix_corgi_sightings_buddy_status", table_name="corgi_sightings")
    op.drop_index("uq_corgi_sightings_reporter_pending", table_name="corgi_sightings")
    op.drop_table("corgi_sightings")
    op.drop_index("ix_buddy_pairs_user2_status", table_name="buddy_pairs")
    op.drop_index("ix_buddy_pairs_user1_status", table_name="buddy_pairs")
    op.drop_table("buddy_pairs")
    op.drop_table("users")
