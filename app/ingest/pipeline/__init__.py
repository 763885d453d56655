"""
Receipt ingestion pipeline.

Orchestrates: fetch → validate → extract → normalize → record → assemble.
Any stage may stop the run with an :class:`IngestionError`; later stages are
not invoked.
"""
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.ingest.errors import IngestionError, InternalError, MissingLookupKey, Outcome
from app.ingest.models import PaymentTransactionModel
from app.ingest.pipeline.assembler import assemble_failure, assemble_success
from app.ingest.pipeline.extractors import extractor_for
from app.ingest.pipeline.fetcher import DocumentFetcher
from app.ingest.pipeline.gate import record_transaction
from app.ingest.pipeline.normalizer import normalize_receipt
from app.ingest.pipeline.validator import validate_document
from app.ingest.schemas import ExtractedReceipt, PipelineResult, Provider

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGES = {
    Provider.BANK: "Missing receipt ID",
    Provider.MOBILE_MONEY: "Transaction number is required",
}


async def process_receipt(
    provider: Provider,
    lookup_key: str | None,
    fetcher: DocumentFetcher,
    db: Session,
) -> tuple[ExtractedReceipt, PaymentTransactionModel]:
    """Run every stage and return ``(receipt, stored_record)``."""
    key = (lookup_key or "").strip()
    if not key:
        raise MissingLookupKey(message=MISSING_KEY_MESSAGES[provider])

    logger.info("Pipeline start — fetch %s receipt %s", provider.value, key)
    raw = await fetcher.fetch(provider, key)

    logger.info("Pipeline — validate")
    validate_document(raw)

    logger.info("Pipeline — extract fields")
    extraction = await run_in_threadpool(extractor_for(provider).extract, raw)

    logger.info("Pipeline — normalize")
    receipt = normalize_receipt(extraction)

    logger.info("Pipeline — record transaction %s", receipt.transaction_id)
    record = await run_in_threadpool(record_transaction, db, receipt)
    return receipt, record


async def ingest(
    provider: Provider,
    lookup_key: str | None,
    fetcher: DocumentFetcher,
    db: Session,
) -> PipelineResult:
    """Run the pipeline and map its outcome to a :class:`PipelineResult`."""
    try:
        receipt, _ = await process_receipt(provider, lookup_key, fetcher, db)
    except IngestionError as exc:
        if exc.outcome is Outcome.INTERNAL_ERROR:
            logger.error(
                "Error processing %s receipt %s: %s (%s)",
                provider.value, lookup_key, exc.message, exc.detail,
            )
        else:
            logger.warning("Rejected %s receipt %s: %s", provider.value, lookup_key, exc)
        return assemble_failure(exc)
    except Exception as exc:
        logger.exception("Unexpected error processing %s receipt %s", provider.value, lookup_key)
        return assemble_failure(InternalError(str(exc)))

    return assemble_success(receipt)
