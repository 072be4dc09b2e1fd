from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from billing.database.database import Base, build_sync_engine

# Import middleware
from billing.common.middleware import TenantMiddleware, SecurityHeadersMiddleware

# Import routers
from billing.modules.numbering.router import router as numbering_router
from billing.modules.invoices.router import router as invoices_router
from billing.modules.documents.router import router as documents_router
from billing.modules.notifications.router import router as notifications_router

# Import models for table creation
import billing.modules.products.models
import billing.modules.numbering.models
import billing.modules.invoices.models
import billing.modules.documents.models
import billing.modules.notifications.models

from billing.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Billing API",
    description="Multi-tenant invoicing backend: document numbering, stock reconciliation and invoice lifecycle",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(numbering_router)
app.include_router(invoices_router)
app.include_router(documents_router)
app.include_router(notifications_router)


@app.get("/")
async def read_root():
    return {
        "message": "Billing API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Billing API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Low stock notifier: {settings.LOW_STOCK_NOTIFIER}")

    # Create database tables (only for development - use migrations in production)
    if settings.ENVIRONMENT == "development":
        sync_engine = build_sync_engine()
        try:
            Base.metadata.create_all(bind=sync_engine)
            logger.info("Database tables ensured")
        finally:
            sync_engine.dispose()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Billing API shutting down...")
