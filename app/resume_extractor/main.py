"""
FastAPI application for the resume extraction service.

Provides endpoints for:
- Uploading PDF resumes and extracting structured fields
- Browsing extracted files and history
- Credit balance and Stripe subscription management
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .models import HealthResponse
from .routers import billing, extract, files, history
from .services.ai import AIService, AIServiceError
from .services.billing import BillingService, BillingServiceError
from .services.credits import CreditLedger, InsufficientCreditsError
from .services.pdf_service import PDFConversionError, PDFService
from .services.pipeline import ResumeExtractionPipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: builds the services on startup."""
    logger.info("Starting Resume Extraction Service...")
    settings = get_settings()

    pdf_service = PDFService.from_settings(settings)
    ai_service = AIService.from_settings(settings)
    credit_ledger = CreditLedger.from_settings(settings)

    app.state.pdf_service = pdf_service
    app.state.ai_service = ai_service
    app.state.credit_ledger = credit_ledger
    app.state.pipeline = ResumeExtractionPipeline.from_settings(
        settings, pdf_service=pdf_service, ai_service=ai_service
    )
    app.state.billing_service = BillingService.from_settings(settings, ledger=credit_ledger)

    # Note: In production, use Alembic migrations instead of init_db()
    if settings.debug:
        init_db()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down Resume Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="Resume Extractor API",
    description="Structured resume extraction from PDF using AI",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="Resume Extractor API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(files.router)
app.include_router(history.router)
app.include_router(extract.router)
app.include_router(billing.router)
app.include_router(billing.webhook_router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(PDFConversionError)
async def pdf_conversion_error_handler(request, exc: PDFConversionError):
    """Handle PDF conversion errors."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


@app.exception_handler(InsufficientCreditsError)
async def insufficient_credits_handler(request, exc: InsufficientCreditsError):
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"detail": exc.to_detail()},
    )


@app.exception_handler(BillingServiceError)
async def billing_error_handler(request, exc: BillingServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )
