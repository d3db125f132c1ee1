"""
Dues Engine - FastAPI Application

Main entry point for the Dues Engine backend.

Architecture:
- PaymentLedger: recorded payments, the payment-presence lookup
- Period calculator + grace gate: which months must be paid, and when
- DelinquencyEvaluator: per-member verdicts for the admin report
  and the member reminder banner
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .routers import payments_router, admin_router
from .database import init_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    logger.info("Dues Engine started")
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Dues Engine",
    description="""
    Dues Engine - Membership Dues & Delinquency Service

    Tracks manually recorded membership payments and reports which members
    are behind on their monthly dues.

    ## Policy
    1. **Lookback**: the current month plus the two preceding months are checked
    2. **Grace**: the current month is not flagged during its first 5 days
    3. **Account age**: months before a member joined are never owed
    4. **Amount owed**: missed months x the member's pricing tier

    ## Key Principles
    - Verdicts are recomputed on every request, never cached
    - Ledger outages surface as 503, never as "paid up"
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(payments_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Dues Engine",
        "version": __version__,
        "description": "Membership Dues & Delinquency Service",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# For running with: python -m dues_engine.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
