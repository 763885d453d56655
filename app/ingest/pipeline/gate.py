"""
Dedup & persistence gate.

Uniqueness of (provider, transaction_id) is enforced by the table's unique
constraint; the gate issues one INSERT and maps a constraint violation to
:class:`DuplicateTransaction`. There is no read-before-write.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.ingest.errors import DuplicateTransaction, PersistenceFailure
from app.ingest.models import PaymentTransactionModel
from app.ingest.schemas import ExtractedReceipt, Provider

logger = logging.getLogger(__name__)


def record_transaction(db: Session, receipt: ExtractedReceipt) -> PaymentTransactionModel:
    record = PaymentTransactionModel(
        id=str(uuid.uuid4()),
        transaction_id=receipt.transaction_id,
        provider=receipt.provider.value,
        amount=receipt.amount,
        date=receipt.occurred_at,
        payer_name=receipt.payer_name,
        receiver_name=receipt.receiver_name,
    )
    try:
        db.add(record)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "Duplicate transaction %s/%s rejected", receipt.provider.value, receipt.transaction_id
        )
        raise DuplicateTransaction(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error storing %s: %s", receipt.transaction_id, exc)
        raise PersistenceFailure(str(exc)) from exc

    db.refresh(record)
    logger.info("Stored transaction %s (%s) as %s", receipt.transaction_id, receipt.provider.value, record.id)
    return record


def get_transaction(db: Session, record_id: str) -> Optional[PaymentTransactionModel]:
    return db.query(PaymentTransactionModel).filter(PaymentTransactionModel.id == record_id).first()


def list_transactions(db: Session, provider: Optional[Provider] = None) -> list[PaymentTransactionModel]:
    query = db.query(PaymentTransactionModel)
    if provider is not None:
        query = query.filter(PaymentTransactionModel.provider == provider.value)
    return query.order_by(PaymentTransactionModel.created_at.desc()).all()
