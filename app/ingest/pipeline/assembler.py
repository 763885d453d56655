"""
Response assembler — pipeline outcome to a provider-agnostic result.
"""
from __future__ import annotations

from fastapi.responses import JSONResponse

from app.ingest.errors import IngestionError, Outcome, Timeout
from app.ingest.schemas import (
    BankReceiptData,
    ExtractedReceipt,
    MobileMoneyReceiptData,
    PipelineResult,
    Provider,
)

STATUS_CODES: dict[Outcome, int] = {
    Outcome.SUCCESS: 200,
    Outcome.VALIDATION_ERROR: 400,
    Outcome.CONFLICT: 409,
    Outcome.INTERNAL_ERROR: 500,
}


def receipt_payload(receipt: ExtractedReceipt) -> dict:
    if receipt.provider is Provider.BANK:
        data = BankReceiptData(
            payer_name=receipt.payer_name,
            receiver_name=receipt.receiver_name,
            amount=receipt.amount,
            transaction_number=receipt.transaction_id,
        )
    else:
        data = MobileMoneyReceiptData(
            payer_name=receipt.payer_name,
            payer_telebirr_no=receipt.payer_phone,
            credited_party_name=receipt.receiver_name,
            transaction_status=receipt.raw_status,
            settled_amount=receipt.amount,
            payment_date=receipt.raw_date or receipt.occurred_at,
        )
    return data.model_dump(by_alias=True)


def assemble_success(receipt: ExtractedReceipt) -> PipelineResult:
    return PipelineResult(outcome=Outcome.SUCCESS, data=receipt_payload(receipt))


def assemble_failure(exc: IngestionError) -> PipelineResult:
    status_code = STATUS_CODES[exc.outcome]
    if isinstance(exc, Timeout):
        status_code = 504

    # validation and conflict messages are already client-facing; server-side
    # failures get a generic message with the cause attached for diagnostics
    details = exc.detail if exc.outcome is Outcome.INTERNAL_ERROR else None
    error = exc.message
    if exc.outcome is Outcome.VALIDATION_ERROR and exc.detail:
        error = f"{exc.message}: {exc.detail}"

    return PipelineResult(
        outcome=exc.outcome,
        error=error,
        details=details,
        retryable=exc.retryable,
        status_code=status_code,
    )


def to_response(result: PipelineResult) -> JSONResponse:
    body: dict = {"success": result.outcome is Outcome.SUCCESS, "outcome": result.outcome.value}
    if result.outcome is Outcome.SUCCESS:
        body["data"] = result.data
    else:
        body["error"] = result.error
        if result.details:
            body["details"] = result.details
        body["retryable"] = result.retryable
    return JSONResponse(status_code=result.status_code, content=body)
