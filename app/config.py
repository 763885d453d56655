"""
Application settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/receipts.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # File storage (SQLite database only; raw receipts are never written)
    DATA_DIR: str = "./data"

    # Bank (CBE) receipt endpoint
    BANK_RECEIPT_URL: str = "https://apps.cbe.com.et:100/"
    # Pinned CA bundle for the bank endpoint; takes precedence over relaxed hosts
    BANK_CA_BUNDLE: str = ""
    # Hosts whose certificate is not verified on the bank client only
    BANK_TLS_RELAXED_HOSTS: List[str] = ["apps.cbe.com.et"]

    # Mobile-money (telebirr) receipt endpoint
    MOBILE_MONEY_RECEIPT_URL: str = "https://transactioninfo.ethiotelecom.et/receipt/"
    MOBILE_MONEY_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # Fetch limits
    FETCH_TIMEOUT_SECONDS: float = 30.0
    MAX_DOCUMENT_BYTES: int = 5 * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
