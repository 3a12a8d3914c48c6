"""SQLAlchemy database models for the card network."""
from typing import List

from sqlalchemy import JSON, BigInteger, CheckConstraint, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
StatementType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Account(Base):
    """
    Card account records table.

    Cardholder accounts are keyed by their card number. Any account can act
    as a merchant when its id is presented as the merchant identifier.
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    card_number: Mapped[str] = mapped_column(String(32), nullable=False)
    card_security_code: Mapped[str] = mapped_column(String(8), nullable=False)
    card_expiry_month: Mapped[str] = mapped_column(String(2), nullable=False)
    card_expiry_year: Mapped[str] = mapped_column(String(4), nullable=False)
    available: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    blocked: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    statement: Mapped[List[str]] = mapped_column(StatementType, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("available >= 0", name="non_negative_available"),
        CheckConstraint("blocked >= 0", name="non_negative_blocked"),
    )

    def __repr__(self) -> str:
        """String representation of Account."""
        return (
            f"<Account(id={self.id}, available={self.available}, "
            f"blocked={self.blocked})>"
        )


class Payment(Base):
    """
    Payment records table.

    One row per operation. Rows are never deleted; only ``current_amount``
    of a referenced row is decremented as successive operations succeed.
    ``merchant_id`` is the merchant that opened the chain; only it may
    capture, reverse or refund records of that chain.
    """

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    operation: Mapped[str] = mapped_column(String(16), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    order_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    merchant_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    card_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(4), nullable=False)
    status_message: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        CheckConstraint("current_amount >= 0", name="non_negative_current_amount"),
        CheckConstraint(
            "operation IN ('AUTHORIZATION', 'CAPTURE', 'REVERSAL', 'REFUND')",
            name="valid_operation",
        ),
        Index("idx_payments_reference_id", "reference_id"),
        Index("idx_payments_card_number", "card_number"),
        Index("idx_payments_merchant_id", "merchant_id"),
    )

    def __repr__(self) -> str:
        """String representation of Payment."""
        return (
            f"<Payment(id={self.id}, operation={self.operation}, "
            f"amount={self.amount}, status={self.status})>"
        )
