"""
Receipt ingestion service — FastAPI application entry‑point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, create_db_engine, create_session_factory
from app.ingest.pipeline.fetcher import DocumentFetcher

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: storage handle + tables, upstream clients
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    # Import models so Base.metadata knows about them
    from app.ingest import models  # noqa: F401
    engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    Base.metadata.create_all(bind=engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.fetcher = DocumentFetcher(settings)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)

    yield

    logger.info("Shutting down")
    await app.state.fetcher.aclose()
    engine.dispose()


app = FastAPI(
    title="Receipt Scraper API",
    description="Bank PDF / telebirr HTML receipt → extracted fields → stored transaction",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "Receipt Scraper API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API router ──────────────────────────────────────────────────
from app.ingest.routers.receipts import router as receipts_router  # noqa: E402

app.include_router(receipts_router, prefix="/api", tags=["Receipts"])
