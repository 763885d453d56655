"""
Shared pytest fixtures — in‑memory SQLite, simulated upstream providers,
FastAPI TestClient.
"""
import os
import pathlib
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DATA_DIR", tempfile.gettempdir())

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import Settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.ingest.models import PaymentTransactionModel  # noqa: E402,F401  — register model
from app.ingest.pipeline.fetcher import DocumentFetcher  # noqa: E402
from app.ingest.routers.receipts import get_fetcher  # noqa: E402
from app.main import app  # noqa: E402

FIXTURES = pathlib.Path(__file__).resolve().parent.parent / "fixtures"

BANK_HOST = "apps.cbe.com.et"

SCENARIO_A_LINES = [
    "Commercial Bank of Ethiopia",
    "Payer John Doe",
    "Account 1****5678",
    "Receiver Jane Roe",
    "Account 1****4321",
    "Transferred Amount1,500.00 ETB",
    "Reference No. (VAT Invoice No)FT25186CS2K308680658",
]

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)


def build_pdf(lines: list[str]) -> bytes:
    """Single-page PDF with one Helvetica text line per entry."""
    def escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = ["BT", "/F1 12 Tf", "16 TL", "72 720 Td"]
    ops += [f"({escape(line)}) Tj T*" for line in lines]
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_at,
    )
    return bytes(out)


class FakeUpstream:
    """Stands in for both provider servers behind ``httpx.MockTransport``.

    ``bank`` and ``telebirr`` hold either an ``httpx.Response`` or a callable
    taking the request.
    """

    def __init__(self):
        self.bank = httpx.Response(404)
        self.telebirr = httpx.Response(404)
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request):
        self.requests.append(request)
        target = self.bank if request.url.host == BANK_HOST else self.telebirr
        if callable(target):
            return target(request)
        # fresh copy so a canned response can be served more than once
        return httpx.Response(target.status_code, headers=target.headers, content=target.content)


def pdf_response(content: bytes, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=content, headers={"content-type": "application/pdf"})


def html_response(html: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=html.encode("utf-8"),
        headers={"content-type": "text/html; charset=utf-8"},
    )


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def upstream():
    return FakeUpstream()


@pytest.fixture()
def fetch_settings():
    return Settings(BANK_TLS_RELAXED_HOSTS=[], FETCH_TIMEOUT_SECONDS=2.0)


@pytest.fixture()
def fetcher(upstream, fetch_settings):
    return DocumentFetcher(fetch_settings, transport=httpx.MockTransport(upstream.handle))


@pytest.fixture()
def scenario_a_pdf():
    return build_pdf(SCENARIO_A_LINES)


@pytest.fixture()
def telebirr_html():
    return (FIXTURES / "telebirr_receipt.html").read_text(encoding="utf-8")


@pytest.fixture()
def client(db, fetcher):
    def _override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
