"""
Format validator — payload signature checks.

Some upstream servers answer with an error page while still claiming the
expected content type, so the bytes themselves are checked before parsing.
"""
from __future__ import annotations

from app.ingest.errors import MalformedDocument
from app.ingest.schemas import Provider, RawDocument

PDF_MAGIC = b"%PDF-"
HTML_MARKERS = (b"<html", b"<!doctype html")
HTML_SNIFF_BYTES = 1024
_BOM = b"\xef\xbb\xbf"


def _looks_like_pdf(content: bytes) -> bool:
    return content.lstrip().startswith(PDF_MAGIC)


def _looks_like_html(content: bytes) -> bool:
    head = content.lstrip()
    if head.startswith(_BOM):
        head = head[len(_BOM):].lstrip()
    head = head[:HTML_SNIFF_BYTES].lower()
    return any(marker in head for marker in HTML_MARKERS)


def validate_document(raw: RawDocument) -> RawDocument:
    """Return *raw* unchanged or raise :class:`MalformedDocument`."""
    if not raw.content:
        raise MalformedDocument("Downloaded document is empty")

    if raw.provider is Provider.BANK:
        if not _looks_like_pdf(raw.content):
            raise MalformedDocument("Downloaded file is not a valid PDF")
    elif not _looks_like_html(raw.content):
        raise MalformedDocument("Downloaded page is not an HTML document")
    return raw
