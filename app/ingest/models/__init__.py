from app.ingest.models.transaction import PaymentTransactionModel  # noqa: F401
