"""
Canonical models for the receipt ingestion pipeline.

All pipeline stages produce and consume these Pydantic v2 models.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.ingest.errors import Outcome


class Provider(str, Enum):
    """Receipt issuer. The value is the provider tag stored with each row."""
    BANK = "cbe"
    MOBILE_MONEY = "telebirr"


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------

class RawDocument(BaseModel):
    """Fetched payload. Lives for one request and is never persisted."""
    provider: Provider
    lookup_key: str
    source_url: str
    content_type: str
    content: bytes = Field(..., repr=False)
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class ExtractionResult(BaseModel):
    """Raw strings located in a document, before normalization."""
    provider: Provider
    transaction_id: str = Field(..., min_length=1)
    payer_name: Optional[str] = None
    payer_phone: Optional[str] = None
    receiver_name: Optional[str] = None
    amount_text: Optional[str] = None
    date_text: Optional[str] = None
    status: Optional[str] = None


class ExtractedReceipt(BaseModel):
    """Normalized receipt ready for the persistence gate."""
    provider: Provider
    transaction_id: str = Field(..., min_length=1)
    payer_name: Optional[str] = None
    payer_phone: Optional[str] = None
    receiver_name: Optional[str] = None
    amount: int = Field(..., ge=0, description="Minor currency units")
    occurred_at: str = Field(..., description="ISO-8601 timestamp")
    raw_date: Optional[str] = None
    raw_status: Optional[str] = None


class StoredTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    transaction_id: str
    provider: Provider
    amount: int
    date: str
    payer_name: Optional[str] = None
    receiver_name: Optional[str] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BankReceiptData(_CamelModel):
    payer_name: Optional[str] = None
    receiver_name: Optional[str] = None
    amount: int
    transaction_number: str


class MobileMoneyReceiptData(_CamelModel):
    payer_name: Optional[str] = None
    payer_telebirr_no: Optional[str] = None
    credited_party_name: Optional[str] = None
    transaction_status: Optional[str] = None
    settled_amount: int
    payment_date: Optional[str] = None


class PipelineResult(BaseModel):
    outcome: Outcome
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    details: Optional[str] = None
    retryable: bool = False
    status_code: int = Field(default=200, exclude=True)
