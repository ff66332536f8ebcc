"""SQLAlchemy 2.0 ORM models for the fast-withdrawal desk.

Three tables:
    1. token_registry     — L1 token -> (deposit box, L2 mirror).
    2. withdrawal_ledger  — withdrawal key -> ledger status.
    3. ledger_events      — Append-only audit log of every registry write
                            and ledger transition.

Design decisions:
    - Addresses are stored checksummed in String(42) columns.
    - uint256 amounts and nonces are stored as decimal strings; they do not
      fit any native integer column.
    - CHECK constraint on status to prevent invalid enum values at DB level.
    - ledger_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fast_withdrawals.domain.messages import ZERO_ADDRESS

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in dev and tests)
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. token_registry
# ---------------------------------------------------------------------------
class TokenRegistration(Base):
    """Where a token's bridged deposits live on L1 and which L2 token mirrors it."""

    __tablename__ = "token_registry"

    token: Mapped[str] = mapped_column(
        String(42),
        primary_key=True,
        comment="L1 token contract address",
    )
    deposit_box: Mapped[str] = mapped_column(
        String(42),
        nullable=False,
        default=ZERO_ADDRESS,
        comment="L1 contract custodying bridged deposits for the token",
    )
    l2_mirror: Mapped[str] = mapped_column(
        String(42),
        nullable=False,
        default=ZERO_ADDRESS,
        comment="L2 contract mirroring the token; origin of withdrawal messages",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return (
            f"<TokenRegistration token={self.token} box={self.deposit_box} "
            f"mirror={self.l2_mirror}>"
        )


# ---------------------------------------------------------------------------
# 2. withdrawal_ledger
# ---------------------------------------------------------------------------
class WithdrawalEntry(Base):
    """Ledger row for one withdrawal key. Absent rows read as UNSET."""

    __tablename__ = "withdrawal_ledger"

    withdrawal_key: Mapped[str] = mapped_column(
        String(66),
        primary_key=True,
        comment="keccak256 of the withdrawal identity (0x-prefixed)",
    )

    token: Mapped[str] = mapped_column(String(42), nullable=False)
    beneficiary: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[str] = mapped_column(
        String(78),
        nullable=False,
        comment="uint256 amount as a decimal string",
    )
    nonce: Mapped[str | None] = mapped_column(
        String(78),
        nullable=True,
        default=None,
        comment="Messenger nonce, when known",
    )

    status: Mapped[str] = mapped_column(
        String(24),
        nullable=False,
        default="UNSET",
        comment="Current ledger state (guarded by WithdrawalStateMachine)",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('UNSET', 'GREENLIGHTED', 'CLAIMED_BY_OWNER', "
            "'CLAIMED_BY_BENEFICIARY')",
            name="ck_withdrawal_valid_status",
        ),
        Index("idx_withdrawal_status", "status"),
        Index("idx_withdrawal_beneficiary", "beneficiary"),
        Index("idx_withdrawal_token", "token"),
    )

    def __repr__(self) -> str:
        return (
            f"<WithdrawalEntry key={self.withdrawal_key} status={self.status} "
            f"amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# 3. ledger_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class LedgerEvent(Base):
    """Immutable audit record of a registry write or ledger transition.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "ledger_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    subject: Mapped[str] = mapped_column(
        String(66),
        nullable=False,
        comment="Withdrawal key for ledger events, token address for registry events",
    )

    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., WITHDRAWAL_GREENLIT)",
    )
    old_status: Mapped[str | None] = mapped_column(
        String(24),
        nullable=True,
        comment="Ledger status before this event (null for registry events)",
    )
    new_status: Mapped[str | None] = mapped_column(
        String(24),
        nullable=True,
        comment="Ledger status after this event (null for registry events)",
    )
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Address of the caller that triggered this event",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JsonColumn,
        nullable=True,
        default=None,
        comment="Arbitrary context: amounts, message hash, previous registry values",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_event_subject", "subject"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


event.listen(TokenRegistration, "before_update", _set_updated_at)
event.listen(WithdrawalEntry, "before_update", _set_updated_at)
