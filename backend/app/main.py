"""
Commission Engine - FastAPI Application

Main entry point for the Commission Engine backend.

Architecture:
- Carrier report → ReportNormalizer → StandardizedRecord[]
- StandardizedRecord → ProductMatcher + DealResolver → Deal
- New Deal → PreconditionValidator → CommissionSnapshotBuilder → Snapshot
- Snapshot → CommissionDistributionCalculator → Commissions
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import (
    commission_reports_router, deals_router, agents_router, commission_structures_router,
)
from .database import init_db
from .services.carriers import CarrierFormatRegistry
from .services.ingestion import ReportStorage

logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and shared components on startup."""
    init_db()
    app.state.carrier_registry = CarrierFormatRegistry.load()
    app.state.report_storage = ReportStorage()
    logger.info(f"Commission Engine ready: {len(app.state.carrier_registry)} carrier formats")
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Commission Engine",
    description="""
    Commission Engine - Carrier Commission Attribution

    Ingests carrier commission reports, matches each row to a deal and product,
    and splits commissions across the writing agent's upline hierarchy.

    ## Pipeline
    1. **Normalizer**: Carrier CSV / Excel → StandardizedRecord
    2. **Deal Resolver**: (policy number, carrier) → Deal, first writer wins per field
    3. **Snapshot Builder**: New Deal → per-agent commission rates, written once
    4. **Distribution**: Snapshot + amount → pending commissions

    ## Key Principles
    - Snapshots are never refreshed from the live hierarchy
    - A deal is only created when every upline agent can be paid
    - Re-uploading a report never duplicates commissions
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(commission_reports_router)
app.include_router(deals_router)
app.include_router(agents_router)
app.include_router(commission_structures_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Commission Engine",
        "version": "1.0.0",
        "description": "Carrier Commission Attribution",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
