from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.core.config import settings
from app.database.database import async_engine, create_tables
from app.common.exceptions import classify_dependency_error
from app.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

from app.modules.invoices.router import router as invoices_router
from app.modules.documents.router import documents_router
from app.modules.taxes.router import taxes_router
from app.modules.catalog.router import catalog_router

# Registers every table on Base.metadata
import app.modules.contacts.models
import app.modules.products.models
import app.modules.company.models
import app.modules.invoices.models
import app.modules.payments.models

logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

app = FastAPI(
    title="Billing API",
    description="Invoice numbering, lifecycle, tax resolution, PDF documents and payment requests",
    version=API_VERSION,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Last added runs first: CORS, request logging, security headers, gzip
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for billing_router in (invoices_router, documents_router, taxes_router, catalog_router):
    app.include_router(billing_router)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    """Store failures that escape a service still surface as one classified 503"""
    error = classify_dependency_error(exc, f"handle {request.method} {request.url.path}")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.get("/")
async def read_root():
    return {
        "message": "Billing API is running",
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    database = "ok"
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {str(e)}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "environment": settings.ENVIRONMENT,
    }


@app.on_event("startup")
async def startup_event():
    logger.info(f"Billing API {API_VERSION} starting ({settings.ENVIRONMENT}, debug={settings.DEBUG})")

    # Schema is created from the models outside production
    if settings.ENVIRONMENT == "development":
        await create_tables()


@app.on_event("shutdown")
async def shutdown_event():
    await async_engine.dispose()
    logger.info("Billing API stopped")
