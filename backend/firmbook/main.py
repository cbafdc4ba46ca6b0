import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from firmbook.config import settings
from firmbook.database import create_tables, engine
from firmbook.documents import close_document_store
from firmbook.middleware.exceptions import register_exception_handlers
from firmbook.routers import billing, health, invoices, masters, reports
from firmbook.utils.cache import close_redis

logger = logging.getLogger("firmbook")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the activity-log table on startup; release clients on shutdown."""
    await create_tables()
    logger.info("Firmbook started (%s, document store: %s)", settings.environment, settings.document_store)
    try:
        yield
    finally:
        await close_document_store()
        await close_redis()
        await engine.dispose()
        logger.info("Firmbook stopped")


app = FastAPI(
    title="Firmbook",
    description="Engagement billing, GST invoicing and collections for CA firms",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(billing.router, prefix="/api/billing", tags=["billing"])
app.include_router(invoices.router, prefix="/api/invoices", tags=["invoices"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(masters.router, prefix="/api/masters", tags=["masters"])
