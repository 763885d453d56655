"""
Receipt ingestion API endpoints.

GET /api/cbe?id=...                        — ingest a CBE bank receipt
GET /api/telebirr?transaction_number=...   — ingest a telebirr receipt
GET /api/transactions                      — list stored transactions
GET /api/transactions/{id}                 — get one stored transaction
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.ingest.pipeline import ingest
from app.ingest.pipeline.assembler import to_response
from app.ingest.pipeline.fetcher import DocumentFetcher
from app.ingest.pipeline.gate import get_transaction, list_transactions
from app.ingest.schemas import Provider, StoredTransaction

logger = logging.getLogger(__name__)
router = APIRouter()


def get_fetcher(request: Request) -> DocumentFetcher:
    """Document fetcher opened in the application lifespan"""
    return request.app.state.fetcher


# ── GET /api/cbe ─────────────────────────────────────────────────────────
@router.get("/cbe")
async def scrape_cbe_receipt(
    id: Optional[str] = None,
    fetcher: DocumentFetcher = Depends(get_fetcher),
    db: Session = Depends(get_db),
):
    logger.info("Processing receipt with ID: %s", id)
    result = await ingest(Provider.BANK, id, fetcher, db)
    return to_response(result)


# ── GET /api/telebirr ────────────────────────────────────────────────────
@router.get("/telebirr")
async def scrape_telebirr_receipt(
    transaction_number: Optional[str] = None,
    fetcher: DocumentFetcher = Depends(get_fetcher),
    db: Session = Depends(get_db),
):
    logger.info("Processing telebirr transaction: %s", transaction_number)
    result = await ingest(Provider.MOBILE_MONEY, transaction_number, fetcher, db)
    return to_response(result)


# ── GET /api/transactions ────────────────────────────────────────────────
@router.get("/transactions", response_model=List[StoredTransaction])
def read_transactions(provider: Optional[Provider] = None, db: Session = Depends(get_db)):
    rows = list_transactions(db, provider)
    logger.info("Found %d transactions in database", len(rows))
    return rows


# ── GET /api/transactions/{record_id} ────────────────────────────────────
@router.get("/transactions/{record_id}", response_model=StoredTransaction)
def read_transaction(record_id: str, db: Session = Depends(get_db)):
    row = get_transaction(db, record_id)
    if not row:
        logger.warning("Transaction not found: %s", record_id)
        raise HTTPException(status_code=404, detail="Transaction not found")
    return row
