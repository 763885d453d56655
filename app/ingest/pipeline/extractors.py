"""
Provider-specific field extractors.

Each strategy turns a validated :class:`RawDocument` into an
:class:`ExtractionResult` of raw strings. Optional fields that cannot be
located come back as ``None``; only the identifying field is strict.
"""
from __future__ import annotations

import io
import logging
import re
from abc import ABC, abstractmethod

import pdfplumber
from bs4 import BeautifulSoup

from app.ingest.errors import (
    InvalidTransactionReference,
    MalformedDocument,
    MissingTransactionId,
)
from app.ingest.schemas import ExtractionResult, Provider, RawDocument

logger = logging.getLogger(__name__)

_AMOUNT_TOKEN = re.compile(r"\d[\d,]*(?:\.\d+)?")


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = " ".join(text.split())
    return text or None


class ReceiptExtractor(ABC):
    provider: Provider

    @abstractmethod
    def extract(self, raw: RawDocument) -> ExtractionResult:
        ...


# ---------------------------------------------------------------------------
# Bank PDF
# ---------------------------------------------------------------------------

class PdfReceiptExtractor(ReceiptExtractor):
    """CBE receipt: render the PDF to text, then read labelled lines."""

    provider = Provider.BANK

    PAYER = re.compile(r"^[ \t]*Payer[ \t:]*(.+)$", re.MULTILINE)
    RECEIVER = re.compile(r"^[ \t]*Receiver[ \t:]*(.+)$", re.MULTILINE)
    AMOUNT = re.compile(r"Transferred Amount[ \t:]*(\d[\d,]*(?:\.\d+)?)\s*ETB")
    PAYMENT_DATE = re.compile(r"Payment Date\s*&\s*Time[ \t:]*([^\n]+)")
    REFERENCE = re.compile(r"Reference No\.?\s*\(VAT Invoice No\)[ \t:]*([^\n]*)")

    def extract(self, raw: RawDocument) -> ExtractionResult:
        return self.parse_text(self.render_text(raw.content))

    def render_text(self, content: bytes) -> str:
        logger.info("Extracting text from PDF buffer (%d bytes)", len(content))
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                return "\n".join(page.extract_text() or "" for page in pdf.pages)
        except Exception as exc:
            logger.error("Error extracting text from PDF: %s", exc)
            raise MalformedDocument(f"Could not read PDF: {exc}") from exc

    @staticmethod
    def _find(pattern: re.Pattern[str], text: str) -> str | None:
        match = pattern.search(text)
        return _clean(match.group(1)) if match else None

    def parse_text(self, text: str) -> ExtractionResult:
        reference = self._find(self.REFERENCE, text)
        if not reference:
            raise MissingTransactionId("Reference No. (VAT Invoice No) not found in receipt")

        return ExtractionResult(
            provider=self.provider,
            transaction_id=reference,
            payer_name=self._find(self.PAYER, text),
            receiver_name=self._find(self.RECEIVER, text),
            amount_text=self._find(self.AMOUNT, text),
            date_text=self._find(self.PAYMENT_DATE, text),
        )


# ---------------------------------------------------------------------------
# Mobile-money HTML
# ---------------------------------------------------------------------------

class HtmlReceiptExtractor(ReceiptExtractor):
    """telebirr receipt page: labelled table cells.

    A label's value is the next cell in its row, or, for header rows, the
    cell in the same column of the following row.
    """

    provider = Provider.MOBILE_MONEY

    FIELD_LABELS: dict[str, tuple[str, ...]] = {
        "payer_name": ("payer name",),
        "payer_phone": ("payer telebirr no",),
        "receiver_name": ("credited party name",),
        "status": ("transaction status",),
        "amount_text": ("settled amount",),
        "date_text": ("payment date",),
    }
    _ALL_LABELS = tuple(label for labels in FIELD_LABELS.values() for label in labels)

    def extract(self, raw: RawDocument) -> ExtractionResult:
        return self.parse_html(raw.text, raw.lookup_key)

    @classmethod
    def _is_label(cls, text: str) -> bool:
        lowered = text.lower()
        return any(label in lowered for label in cls._ALL_LABELS)

    @staticmethod
    def _table_rows(soup: BeautifulSoup) -> list[list[str]]:
        rows: list[list[str]] = []
        for tr in soup.find_all("tr"):
            cells = []
            for cell in tr.find_all(["td", "th"], recursive=False):
                # layout cells wrapping a nested table are read through their own rows
                if cell.find("table") is not None:
                    cells.append("")
                else:
                    cells.append(_clean(cell.get_text(" ")) or "")
            rows.append(cells)
        return rows

    def _lookup(self, rows: list[list[str]], labels: tuple[str, ...]) -> str | None:
        for r, row in enumerate(rows):
            for c, cell in enumerate(row):
                lowered = cell.lower()
                if not any(label in lowered for label in labels):
                    continue
                if c + 1 < len(row) and not self._is_label(row[c + 1]):
                    return row[c + 1] or None
                if r + 1 < len(rows) and c < len(rows[r + 1]):
                    below = rows[r + 1][c]
                    if not self._is_label(below):
                        return below or None
                return None
        return None

    def parse_html(self, html: str, transaction_id: str) -> ExtractionResult:
        rows = self._table_rows(BeautifulSoup(html, "html.parser"))
        found = {field: self._lookup(rows, labels) for field, labels in self.FIELD_LABELS.items()}

        if not found["status"]:
            raise InvalidTransactionReference(
                f"No transaction status on receipt page for {transaction_id}"
            )

        amount = found["amount_text"]
        if amount:
            token = _AMOUNT_TOKEN.search(amount)
            amount = token.group(0) if token else amount

        return ExtractionResult(
            provider=self.provider,
            transaction_id=transaction_id,
            payer_name=found["payer_name"],
            payer_phone=found["payer_phone"],
            receiver_name=found["receiver_name"],
            amount_text=amount,
            date_text=found["date_text"],
            status=found["status"],
        )


_EXTRACTORS: dict[Provider, ReceiptExtractor] = {
    Provider.BANK: PdfReceiptExtractor(),
    Provider.MOBILE_MONEY: HtmlReceiptExtractor(),
}


def extractor_for(provider: Provider) -> ReceiptExtractor:
    return _EXTRACTORS[provider]
