"""
Normalizer — raw extracted strings to typed values.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as date_parser

from app.ingest.errors import InvalidAmount
from app.ingest.schemas import ExtractedReceipt, ExtractionResult

# Formats seen on provider receipts, tried in order before dateutil
DATE_FORMATS = (
    "%d-%m-%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y, %I:%M:%S %p",
    "%Y-%m-%d %H:%M:%S",
    "%d-%m-%Y",
)

# Both providers print local Ethiopian time (UTC+3, no DST)
PROVIDER_TZ = timezone(timedelta(hours=3), "EAT")

# Largest value the INTEGER amount column can hold
MAX_MINOR_UNITS = 2**63 - 1


def normalize_amount(text: str | None) -> int:
    """``"1,234.56"`` -> ``123456`` minor units."""
    if text is None or not text.strip():
        raise InvalidAmount("Amount not found on receipt")
    cleaned = text.strip().replace(",", "")
    try:
        value = Decimal(cleaned)
        if not value.is_finite() or value < 0:
            raise InvalidAmount(f"Amount is not a finite non-negative number: {text!r}")
        minor = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise InvalidAmount(f"Amount is not a representable number: {text!r}") from exc
    if minor > MAX_MINOR_UNITS:
        raise InvalidAmount(f"Amount is too large: {text!r}")
    return minor


def normalize_name(text: str | None) -> str | None:
    if text is None:
        return None
    return " ".join(text.split()) or None


def _parse_date(text: str) -> datetime | None:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        # telebirr prints dd-mm-yyyy
        return date_parser.parse(text, dayfirst=True, fuzzy=True)
    except (ValueError, OverflowError):
        return None


def normalize_date(text: str | None, now: datetime | None = None) -> str:
    """Parse a provider date to an ISO-8601 UTC timestamp.

    Dates without an offset are provider local time. Falls back to the
    ingestion time when the receipt carries no machine-readable date.
    """
    cleaned = normalize_name(text)
    parsed = _parse_date(cleaned) if cleaned else None
    if parsed is None:
        parsed = now or datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=PROVIDER_TZ)
    return parsed.astimezone(timezone.utc).isoformat()


def normalize_receipt(result: ExtractionResult, now: datetime | None = None) -> ExtractedReceipt:
    return ExtractedReceipt(
        provider=result.provider,
        transaction_id=result.transaction_id.strip(),
        payer_name=normalize_name(result.payer_name),
        payer_phone=normalize_name(result.payer_phone),
        receiver_name=normalize_name(result.receiver_name),
        amount=normalize_amount(result.amount_text),
        occurred_at=normalize_date(result.date_text, now),
        raw_date=normalize_name(result.date_text),
        raw_status=normalize_name(result.status),
    )
