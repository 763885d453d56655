"""
Document fetcher.

Downloads a receipt from its provider endpoint into memory. Status and
content type are checked before the body is read; the body is capped at
``MAX_DOCUMENT_BYTES`` and the whole fetch is bounded by
``FETCH_TIMEOUT_SECONDS``.
"""
from __future__ import annotations

import asyncio
import logging
import ssl
from urllib.parse import quote, urlsplit

import httpx

from app.config import Settings, settings
from app.ingest.errors import (
    DocumentTooLarge,
    FetchError,
    Timeout,
    TransportFailure,
    UnexpectedContentType,
    UnexpectedStatus,
)
from app.ingest.schemas import Provider, RawDocument

logger = logging.getLogger(__name__)

EXPECTED_CONTENT_TYPES: dict[Provider, str] = {
    Provider.BANK: "application/pdf",
    Provider.MOBILE_MONEY: "text/html",
}


def browser_headers(user_agent: str) -> dict[str, str]:
    # The telebirr server rejects requests that do not look like a browser
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
        "DNT": "1",
    }


def bank_tls_verify(config: Settings) -> ssl.SSLContext | bool:
    """Certificate policy for the bank client only.

    A pinned CA bundle wins. Otherwise verification is skipped only when the
    bank host is explicitly allowlisted.
    """
    if config.BANK_CA_BUNDLE:
        return ssl.create_default_context(cafile=config.BANK_CA_BUNDLE)
    host = urlsplit(config.BANK_RECEIPT_URL).hostname or ""
    if host in config.BANK_TLS_RELAXED_HOSTS:
        logger.warning("TLS verification disabled for allowlisted bank host %s", host)
        return False
    return True


class DocumentFetcher:
    """One HTTP client per provider, opened at startup and closed on shutdown."""

    def __init__(
        self,
        config: Settings = settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        timeout = httpx.Timeout(config.FETCH_TIMEOUT_SECONDS)
        self._clients: dict[Provider, httpx.AsyncClient] = {
            Provider.BANK: httpx.AsyncClient(
                timeout=timeout,
                verify=bank_tls_verify(config),
                follow_redirects=False,
                transport=transport,
            ),
            Provider.MOBILE_MONEY: httpx.AsyncClient(
                timeout=timeout,
                headers=browser_headers(config.MOBILE_MONEY_USER_AGENT),
                follow_redirects=False,
                transport=transport,
            ),
        }

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()

    def build_request(self, provider: Provider, lookup_key: str) -> tuple[str, dict[str, str]]:
        """Return ``(url, query_params)`` for a lookup."""
        if provider is Provider.BANK:
            return self.config.BANK_RECEIPT_URL, {"id": lookup_key}
        base = self.config.MOBILE_MONEY_RECEIPT_URL
        if not base.endswith("/"):
            base += "/"
        return base + quote(lookup_key, safe=""), {}

    async def fetch(self, provider: Provider, lookup_key: str) -> RawDocument:
        url, params = self.build_request(provider, lookup_key)
        logger.info("Fetching %s receipt %s from %s", provider.value, lookup_key, url)
        try:
            return await asyncio.wait_for(
                self._download(provider, lookup_key, url, params),
                timeout=self.config.FETCH_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            raise Timeout(
                f"No complete response within {self.config.FETCH_TIMEOUT_SECONDS:g}s"
            ) from exc

    async def _download(
        self, provider: Provider, lookup_key: str, url: str, params: dict[str, str]
    ) -> RawDocument:
        client = self._clients[provider]
        expected = EXPECTED_CONTENT_TYPES[provider]
        try:
            async with client.stream("GET", url, params=params) as response:
                if response.status_code != 200:
                    if provider is Provider.BANK and response.status_code == 500:
                        # CBE answers unknown or malformed receipt ids with a bare 500
                        raise UnexpectedStatus(500, "Invalid Receipt Data (HTTP 500)")
                    raise UnexpectedStatus(response.status_code)

                content_type = response.headers.get("content-type", "")
                logger.info("Content-Type: %s", content_type)
                if expected not in content_type.lower():
                    raise UnexpectedContentType(f"Unexpected content type: {content_type or 'none'}")

                content = await self._read_capped(response)
                logger.info("Downloaded %s receipt: %d bytes", provider.value, len(content))
                return RawDocument(
                    provider=provider,
                    lookup_key=lookup_key,
                    source_url=str(response.url),
                    content_type=content_type,
                    content=content,
                    encoding=response.charset_encoding,
                )
        except FetchError:
            raise
        except httpx.TimeoutException as exc:
            raise Timeout(f"Request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Request error: {exc}") from exc

    async def _read_capped(self, response: httpx.Response) -> bytes:
        limit = self.config.MAX_DOCUMENT_BYTES
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > limit:
                raise DocumentTooLarge(f"Receipt exceeds {limit} bytes")
            chunks.append(chunk)
        return b"".join(chunks)
