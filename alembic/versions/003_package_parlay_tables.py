"""Package catalog, pricing, user packages and parlays.

Revision ID: 003_package_parlay_tables
Revises: 002_prediction_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "003_package_parlay_tables"
down_revision: str | None = "002_prediction_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create package and parlay tables."""
    # --- Packages ---
    op.create_table(
        "package_offers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("package_type", sa.String(32), nullable=False),
        sa.Column("tip_count", sa.Integer(), nullable=False),
        sa.Column("validity_days", sa.Integer(), nullable=False),
        sa.Column("features", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
    )

    op.create_table(
        "package_offer_country_prices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "package_offer_id", sa.Integer(), sa.ForeignKey("package_offers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("country_id", sa.Integer(), sa.ForeignKey("countries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.UniqueConstraint("package_offer_id", "country_id", name="uq_package_offer_country_prices_package_offer_id"),
    )

    op.create_table(
        "package_country_prices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("country_id", sa.Integer(), sa.ForeignKey("countries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("package_type", sa.String(32), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("country_id", "package_type", name="uq_package_country_prices_country_id"),
    )

    op.create_table(
        "package_purchases",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "package_offer_id", sa.Integer(), sa.ForeignKey("package_offers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("country_id", sa.Integer(), sa.ForeignKey("countries.id"), nullable=True),
        sa.Column("package_type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="stripe"),
        sa.Column("payment_intent_id", sa.String(128), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "user_packages",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "package_offer_id", sa.Integer(), sa.ForeignKey("package_offers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("package_type", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tips_remaining", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_tips", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_packages_user_status", "user_packages", ["user_id", "status", "expires_at"])

    op.create_table(
        "user_package_tips",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_package_id", sa.BigInteger(), sa.ForeignKey("user_packages.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "prediction_id", sa.BigInteger(), sa.ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("status", sa.String(16), nullable=False, server_default="claimed"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "prediction_id", name="uq_user_package_tips_user_id"),
    )

    # --- Parlays ---
    op.create_table(
        "parlay_consensus",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("parlay_id", postgresql.UUID(as_uuid=False), nullable=False, unique=True),
        sa.Column("leg_count", sa.Integer(), nullable=False),
        sa.Column("combined_prob", sa.Float(), nullable=False),
        sa.Column("implied_odds", sa.Float(), nullable=False),
        sa.Column("edge_pct", sa.Float(), nullable=False),
        sa.Column("confidence_tier", sa.String(16), nullable=False, server_default="low"),
        sa.Column("parlay_type", sa.String(32), nullable=False, server_default="multi_game"),
        sa.Column("earliest_kickoff", sa.DateTime(timezone=True), nullable=True),
        sa.Column("latest_kickoff", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "parlay_legs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "parlay_id", sa.BigInteger(), sa.ForeignKey("parlay_consensus.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("match_id", sa.BigInteger(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leg_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("market", sa.String(32), nullable=True),
        sa.Column("side", sa.String(32), nullable=True),
        sa.Column("outcome", sa.String(32), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=True),
        sa.Column("home_team", sa.String(128), nullable=True),
        sa.Column("away_team", sa.String(128), nullable=True),
        sa.Column("model_prob", sa.Float(), nullable=False),
        sa.Column("decimal_odds", sa.Float(), nullable=False),
        sa.Column("edge", sa.Float(), nullable=True),
    )
    op.create_index("ix_parlay_legs_parlay_id", "parlay_legs", ["parlay_id"])

    op.create_table(
        "parlay_purchases",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "parlay_id", sa.BigInteger(), sa.ForeignKey("parlay_consensus.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("amount_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("potential_return", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="stripe"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        "parlay_purchases",
        "parlay_legs",
        "parlay_consensus",
        "user_package_tips",
        "user_packages",
        "package_purchases",
        "package_country_prices",
        "package_offer_country_prices",
        "package_offers",
    ):
        op.drop_table(table)
