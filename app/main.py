# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .api.routes import ai, health
from .config.logging_config import setup_logging
from .config.setting import settings, validate_settings
from .core.exceptions import ValidationError
from .services.query_service import build_query_explain_service
from .utilities.helpers.data_formatters import format_error_response, format_validation_response

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting CRM Query Intelligence API...")

    # Validate configuration
    try:
        validate_settings()
        logger.info("Configuration validated successfully")
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise

    # Services hold only immutable state; tests may pre-seed app.state
    if getattr(app.state, "query_service", None) is None:
        app.state.query_service = build_query_explain_service()

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down CRM Query Intelligence API...")
    app.state.query_service = None
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Request validation failed on {request.url.path}: {len(exc.errors())} error(s)")
    return format_validation_response(exc.errors())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Invalid request on {request.url.path}: {exc}")
    return format_error_response("Invalid request", str(exc), status_code=400, error_code="validation_error")


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(ai.router, prefix=f"{settings.API_PREFIX}/ai", tags=["ai"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "CRM Query Intelligence API",
        "version": settings.API_VERSION,
        "status": "running",
        "debug_mode": settings.DEBUG,
        "intent_service": settings.INTENT_SERVICE_ENABLED
    }
