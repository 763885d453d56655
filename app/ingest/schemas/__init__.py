from app.ingest.schemas.base import (  # noqa: F401
    BankReceiptData,
    ExtractedReceipt,
    ExtractionResult,
    MobileMoneyReceiptData,
    PipelineResult,
    Provider,
    RawDocument,
    StoredTransaction,
)
