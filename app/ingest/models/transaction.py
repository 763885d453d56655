"""
SQLAlchemy model for stored payment transactions.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentTransactionModel(Base):
    """One row per (provider, transaction_id). Rows are never updated."""
    __tablename__ = "payment_transactions"
    __table_args__ = (
        UniqueConstraint("provider", "transaction_id", name="uq_payment_transactions_provider_txn"),
    )

    id = Column(String, primary_key=True)
    transaction_id = Column(String, nullable=False, index=True)
    provider = Column(String(16), nullable=False)  # cbe, telebirr
    amount = Column(Integer, nullable=False)  # minor units
    date = Column(String, nullable=False)  # ISO-8601
    payer_name = Column(String)
    receiver_name = Column(String)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
