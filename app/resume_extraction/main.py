"""
FastAPI application for the resume extraction service.

Provides endpoints for:
- Extracting structured resume data from an uploaded PDF
- Job history with audit trail and stored results
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .models import HealthResponse
from .routers import extract, jobs
from .services.ai import get_ai_service
from .services.exceptions import ExtractionError
from .services.pdf_service import get_pdf_service
from .services.rasterization_service import get_rasterization_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Resume Extraction Service...")
    init_db()
    get_pdf_service()
    get_ai_service()
    if not get_rasterization_service().enabled:
        logger.warning(
            "PDFCO_API_KEY not set: image-based PDFs without embedded images cannot be processed"
        )
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down Resume Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="Resume Extraction API",
    description="Structured resume data extraction from PDF documents using AI",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
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
        message="Resume Extraction API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(extract.router)
app.include_router(jobs.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    """Render typed pipeline failures as the error envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc)
    else:
        logger.info("%s on %s: %s", exc.kind, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Last-resort handler; never leaks internal details."""
    logger.exception("Unexpected error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Failed to process the file. Please try again.",
            "kind": "Internal",
        },
    )
