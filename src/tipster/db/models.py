"""ORM models for the prediction, package, credit and content domains.

Every column with a server default also carries a Python-side default so that
freshly flushed objects never need a lazy refresh under the async session.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tipster.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Countries & users
# ---------------------------------------------------------------------------


class Country(Base):
    """Supported market with its display currency."""

    __tablename__ = "countries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(2), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="USD", server_default="USD")
    currency_symbol: Mapped[str] = mapped_column(String(8), nullable=False, default="$", server_default="$")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")


class User(Base):
    """Account holder. ``role`` is one of user, staff, admin."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    country_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("countries.id"), nullable=True)
    prediction_credits: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    win_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    login_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    country: Mapped[Country | None] = relationship("Country", lazy="joined")

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == "admin"

    @property
    def is_staff(self) -> bool:
        return (self.role or "").lower() in {"staff", "admin"}


class RefreshToken(Base):
    """JWT refresh token tracking for revocation and rotation."""

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(INET, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    replaced_by: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)


# ---------------------------------------------------------------------------
# Leagues, teams, matches, predictions
# ---------------------------------------------------------------------------


class League(Base):
    """Competition synced from the fixtures provider."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    country_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    sport: Mapped[str] = mapped_column(String(32), nullable=False, default="football", server_default="football")
    external_league_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    sync_frequency: Mapped[str] = mapped_column(String(16), nullable=False, default="daily", server_default="daily")
    match_limit: Mapped[int] = mapped_column(Integer, default=10, server_default="10")
    priority: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    league_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="SET NULL"), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)


class Match(Base):
    """Fixture. ``status`` is upcoming, live, finished, cancelled or postponed."""

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    external_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    home_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    match_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming", server_default="upcoming")
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    league: Mapped[League] = relationship("League", lazy="joined")
    home_team: Mapped[Team] = relationship("Team", foreign_keys=[home_team_id], lazy="joined")
    away_team: Mapped[Team] = relationship("Team", foreign_keys=[away_team_id], lazy="joined")


class Prediction(Base):
    """Model output for a match. ``status`` is pending, won, lost or void."""

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    prediction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    confidence_score: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    odds: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    value_rating: Mapped[str | None] = mapped_column(String(16), nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="single", server_default="single")
    is_free: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    result_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    match: Mapped[Match] = relationship("Match", lazy="joined")


class UserPrediction(Base):
    """A prediction a user unlocked or followed."""

    __tablename__ = "user_predictions"
    __table_args__ = (UniqueConstraint("user_id", "prediction_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prediction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    stake: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    potential_return: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Quick purchases (denormalized prediction bundles)
# ---------------------------------------------------------------------------


class QuickPurchase(Base):
    """Purchasable tip carrying match and prediction JSON snapshots."""

    __tablename__ = "quick_purchases"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="prediction", server_default="prediction")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    country_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("countries.id"), nullable=True)
    match_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    match_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    prediction_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    prediction_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    odds: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    value_rating: Mapped[str | None] = mapped_column(String(16), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_prediction_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class Purchase(Base):
    """One-off payment for a quick purchase."""

    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quick_purchase_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("quick_purchases.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe", server_default="stripe")
    payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed", server_default="completed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    quick_purchase: Mapped[QuickPurchase] = relationship("QuickPurchase", lazy="joined")


# ---------------------------------------------------------------------------
# Packages & pricing
# ---------------------------------------------------------------------------


class PackageOffer(Base):
    """Catalog entry. ``tip_count`` of -1 means unlimited."""

    __tablename__ = "package_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    package_type: Mapped[str] = mapped_column(String(32), nullable=False)
    tip_count: Mapped[int] = mapped_column(Integer, nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    features: Mapped[list[str]] = mapped_column(JSONB, default=list, server_default="[]")
    display_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")

    country_prices: Mapped[list[PackageOfferCountryPrice]] = relationship(
        "PackageOfferCountryPrice", back_populates="package_offer", lazy="selectin"
    )


class PackageOfferCountryPrice(Base):
    __tablename__ = "package_offer_country_prices"
    __table_args__ = (UniqueConstraint("package_offer_id", "country_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    package_offer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("package_offers.id", ondelete="CASCADE"), nullable=False
    )
    country_id: Mapped[int] = mapped_column(Integer, ForeignKey("countries.id", ondelete="CASCADE"), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")

    package_offer: Mapped[PackageOffer] = relationship("PackageOffer", back_populates="country_prices", lazy="joined")
    country: Mapped[Country] = relationship("Country", lazy="joined")


class PackageCountryPrice(Base):
    """Per-country price for a package type, managed by admins."""

    __tablename__ = "package_country_prices"
    __table_args__ = (UniqueConstraint("country_id", "package_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_id: Mapped[int] = mapped_column(Integer, ForeignKey("countries.id", ondelete="CASCADE"), nullable=False)
    package_type: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    country: Mapped[Country] = relationship("Country", lazy="joined")


class PackagePurchase(Base):
    __tablename__ = "package_purchases"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    package_offer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("package_offers.id", ondelete="SET NULL"), nullable=True
    )
    country_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("countries.id"), nullable=True)
    package_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe", server_default="stripe")
    payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed", server_default="completed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class UserPackage(Base):
    """Package owned by a user. ``total_tips`` of -1 means unlimited."""

    __tablename__ = "user_packages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    package_offer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("package_offers.id", ondelete="SET NULL"), nullable=True
    )
    package_type: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tips_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_tips: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    @property
    def is_unlimited(self) -> bool:
        return self.total_tips == -1


class UserPackageTip(Base):
    """A prediction unlocked by spending a package tip."""

    __tablename__ = "user_package_tips"
    __table_args__ = (UniqueConstraint("user_id", "prediction_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_packages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prediction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="claimed", server_default="claimed")
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    prediction: Mapped[Prediction] = relationship("Prediction", lazy="joined")


# ---------------------------------------------------------------------------
# Parlays
# ---------------------------------------------------------------------------


class ParlayConsensus(Base):
    """Multi-leg parlay with the averaged probability of the V1/V2 models."""

    __tablename__ = "parlay_consensus"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    parlay_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), unique=True, nullable=False, default=lambda: str(uuid.uuid4())
    )
    leg_count: Mapped[int] = mapped_column(Integer, nullable=False)
    combined_prob: Mapped[float] = mapped_column(Float, nullable=False)
    implied_odds: Mapped[float] = mapped_column(Float, nullable=False)
    edge_pct: Mapped[float] = mapped_column(Float, nullable=False)
    confidence_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="low", server_default="low")
    parlay_type: Mapped[str] = mapped_column(String(32), nullable=False, default="multi_game")
    earliest_kickoff: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    latest_kickoff: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    legs: Mapped[list[ParlayLeg]] = relationship(
        "ParlayLeg", back_populates="parlay", lazy="selectin", order_by="ParlayLeg.leg_order"
    )


class ParlayLeg(Base):
    __tablename__ = "parlay_legs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    parlay_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("parlay_consensus.id", ondelete="CASCADE"), nullable=False
    )
    match_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    leg_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    market: Mapped[str | None] = mapped_column(String(32), nullable=True)
    side: Mapped[str | None] = mapped_column(String(32), nullable=True)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    home_team: Mapped[str | None] = mapped_column(String(128), nullable=True)
    away_team: Mapped[str | None] = mapped_column(String(128), nullable=True)
    model_prob: Mapped[float] = mapped_column(Float, nullable=False)
    decimal_odds: Mapped[float] = mapped_column(Float, nullable=False)
    edge: Mapped[float] = mapped_column(Float, default=0.0)

    parlay: Mapped[ParlayConsensus] = relationship("ParlayConsensus", back_populates="legs")


class ParlayPurchase(Base):
    __tablename__ = "parlay_purchases"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parlay_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("parlay_consensus.id", ondelete="CASCADE"), nullable=False
    )
    amount_usd: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    potential_return: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe", server_default="stripe")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    parlay: Mapped[ParlayConsensus] = relationship("ParlayConsensus", lazy="joined")


# ---------------------------------------------------------------------------
# Credits, points, quiz
# ---------------------------------------------------------------------------


class CreditTransaction(Base):
    """Ledger of prediction-credit movements. Negative amounts are spends."""

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    tx_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, default=dict, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )


class CreditTipClaim(Base):
    """Prediction unlocked with direct credits; access expires after 24h."""

    __tablename__ = "credit_tip_claims"
    __table_args__ = (UniqueConstraint("user_id", "prediction_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prediction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    credits_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    prediction: Mapped[Prediction] = relationship("Prediction", lazy="joined")


class UserPoints(Base):
    """Quiz/referral points balance, one row per user."""

    __tablename__ = "user_points"

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_earned: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class QuizQuestion(Base):
    """Multiple-choice question. ``options`` is the list of answer labels."""

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSONB, default=list, server_default="[]")
    correct_answer: Mapped[str] = mapped_column(String(256), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=10, server_default="10")
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class QuizParticipation(Base):
    """One attempt at the weekly quiz; anonymous attempts have no ``user_id``."""

    __tablename__ = "quiz_participations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    betting_experience: Mapped[str | None] = mapped_column(String(32), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    questions_answered: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_score: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    credits_claimed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user: Mapped[User | None] = relationship("User", lazy="joined")


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"
    __table_args__ = (UniqueConstraint("participation_id", "question_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    participation_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("quiz_participations.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )
    selected_answer: Mapped[str] = mapped_column(String(256), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class ReferralCode(Base):
    __tablename__ = "referral_codes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    usage_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    max_usage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Referral(Base):
    """Referrer/referred pair. ``status`` is pending or completed."""

    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    referred_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    referral_code_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("referral_codes.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    referrer_reward_credits: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    referrer_reward_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    referred_reward_credits: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    referred_reward_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Support
# ---------------------------------------------------------------------------


class SupportTicket(Base):
    """``status`` is open, in_progress, resolved or closed."""

    __tablename__ = "support_tickets"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open", server_default="open")
    tags: Mapped[list[str]] = mapped_column(JSONB, default=list, server_default="[]")
    assigned_to: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    user: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="joined")
    responses: Mapped[list[TicketResponse]] = relationship(
        "TicketResponse", back_populates="ticket", lazy="selectin", order_by="TicketResponse.created_at"
    )


class TicketResponse(Base):
    __tablename__ = "ticket_responses"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_staff_response: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    ticket: Mapped[SupportTicket] = relationship("SupportTicket", back_populates="responses")
    user: Mapped[User] = relationship("User", lazy="joined")


# ---------------------------------------------------------------------------
# Blog
# ---------------------------------------------------------------------------


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    slug: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(128), nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONB, default=list, server_default="[]")
    seo_title: Mapped[str | None] = mapped_column(String(256), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    view_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    media: Mapped[list[BlogMedia]] = relationship(
        "BlogMedia",
        back_populates="blog_post",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="BlogMedia.sort_order",
    )


class BlogMedia(Base):
    __tablename__ = "blog_media"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    blog_post_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="image")
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt_text: Mapped[str | None] = mapped_column(String(256), nullable=True)
    caption: Mapped[str | None] = mapped_column(String(512), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    blog_post: Mapped[BlogPost] = relationship("BlogPost", back_populates="media")


class BlogComment(Base):
    """Reader comment. New comments wait for moderation."""

    __tablename__ = "blog_comments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    blog_post_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("blog_comments.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_spam: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user: Mapped[User] = relationship("User", lazy="joined")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Persisted in-app notification."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="info", server_default="info")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="system", server_default="system")
    action_url: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    notification_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONB, default=dict, server_default="{}"
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )


# ---------------------------------------------------------------------------
# CLV cache
# ---------------------------------------------------------------------------


class CLVOpportunityCache(Base):
    """Snapshot of closing-line-value opportunities for low-bandwidth reads."""

    __tablename__ = "clv_opportunity_cache"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    match_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    home_team: Mapped[str] = mapped_column(String(128), nullable=False)
    away_team: Mapped[str] = mapped_column(String(128), nullable=False)
    league: Mapped[str | None] = mapped_column(String(128), nullable=True)
    match_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    market_type: Mapped[str] = mapped_column(String(32), nullable=False)
    selection: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_odds: Mapped[float] = mapped_column(Float, nullable=False)
    close_odds: Mapped[float | None] = mapped_column(Float, nullable=True)
    entry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    bookmaker: Mapped[str | None] = mapped_column(String(64), nullable=True)
    time_bucket: Mapped[str | None] = mapped_column(String(32), nullable=True)
    window_filter: Mapped[str] = mapped_column(String(16), nullable=False, default="all", server_default="all")
    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
