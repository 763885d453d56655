"""
Dedup & persistence gate — idempotence under sequential and concurrent
submission.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FIXTURES
from app.database import Base, create_db_engine, create_session_factory
from app.ingest.errors import DuplicateTransaction, Outcome, PersistenceFailure
from app.ingest.pipeline import ingest
from app.ingest.models import PaymentTransactionModel
from app.ingest.pipeline.gate import get_transaction, list_transactions, record_transaction
from app.ingest.schemas import ExtractedReceipt, Provider, RawDocument


def _receipt(transaction_id: str = "FT25186CS2K308680658", provider: Provider = Provider.BANK) -> ExtractedReceipt:
    return ExtractedReceipt(
        provider=provider,
        transaction_id=transaction_id,
        payer_name="John Doe",
        receiver_name="Jane Roe",
        amount=150000,
        occurred_at="2025-07-05T07:21:03+00:00",
    )


class TestRecordTransaction:
    def test_stores_record(self, db):
        record = record_transaction(db, _receipt())
        assert record.id
        assert record.amount == 150000
        assert record.provider == "cbe"
        assert record.date == "2025-07-05T07:21:03+00:00"
        assert record.created_at is not None
        assert get_transaction(db, record.id).transaction_id == "FT25186CS2K308680658"

    def test_second_submission_is_duplicate(self, db):
        record_transaction(db, _receipt())
        with pytest.raises(DuplicateTransaction):
            record_transaction(db, _receipt())
        assert db.query(PaymentTransactionModel).count() == 1

    def test_session_usable_after_duplicate(self, db):
        record_transaction(db, _receipt())
        with pytest.raises(DuplicateTransaction):
            record_transaction(db, _receipt())
        record_transaction(db, _receipt("FT2"))
        assert db.query(PaymentTransactionModel).count() == 2

    def test_same_id_different_provider(self, db):
        record_transaction(db, _receipt("CG179W93AJ", Provider.BANK))
        record_transaction(db, _receipt("CG179W93AJ", Provider.MOBILE_MONEY))
        assert len(list_transactions(db)) == 2
        assert len(list_transactions(db, Provider.MOBILE_MONEY)) == 1

    def test_concurrent_submissions_store_one_row(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(bind=engine)
        factory = create_session_factory(engine)
        workers = 4
        barrier = threading.Barrier(workers)

        def submit(_):
            session = factory()
            try:
                barrier.wait()
                record_transaction(session, _receipt())
                return "stored"
            except DuplicateTransaction:
                return "duplicate"
            finally:
                session.close()

        try:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(submit, range(workers)))

            assert outcomes.count("stored") == 1
            assert outcomes.count("duplicate") == workers - 1
            session = factory()
            try:
                assert session.query(PaymentTransactionModel).count() == 1
            finally:
                session.close()
        finally:
            engine.dispose()


@pytest.fixture()
def tableless_session(tmp_path):
    """Session on a database whose schema was never created."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    session = create_session_factory(engine)()
    try:
        yield session, engine
    finally:
        session.close()
        engine.dispose()


class _FixtureFetcher:
    async def fetch(self, provider, lookup_key):
        return RawDocument(
            provider=provider,
            lookup_key=lookup_key,
            source_url="https://transactioninfo.ethiotelecom.et/receipt/" + lookup_key,
            content_type="text/html; charset=utf-8",
            content=(FIXTURES / "telebirr_receipt.html").read_bytes(),
            encoding="utf-8",
        )


class TestPersistenceFailure:
    def test_database_error_is_persistence_failure(self, tableless_session):
        session, engine = tableless_session
        with pytest.raises(PersistenceFailure) as exc_info:
            record_transaction(session, _receipt())
        assert "no such table" in exc_info.value.detail
        assert not session.in_transaction()

        Base.metadata.create_all(bind=engine)
        assert session.query(PaymentTransactionModel).count() == 0

    @pytest.mark.asyncio
    async def test_ingest_reports_internal_error(self, tableless_session):
        session, _ = tableless_session
        result = await ingest(Provider.MOBILE_MONEY, "CG179W93AJ", _FixtureFetcher(), session)
        assert result.outcome is Outcome.INTERNAL_ERROR
        assert result.status_code == 500
        assert result.error == "Failed to save transaction to the database"
        assert "no such table" in result.details
        assert result.retryable is False
