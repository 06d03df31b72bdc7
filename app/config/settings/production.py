from app.config.settings.base import BackendBaseSettings
from app.config.settings.environment import Environment

class BackendProdSettings(BackendBaseSettings):
    """Production-specific settings"""
    DESCRIPTION: str | None = "Production Environment - CRM Query Intelligence API"
    DEBUG: bool = False
    ENVIRONMENT: Environment = Environment.PRODUCTION

    # Production security
    LOG_LEVEL: str = "WARNING"

    # Stricter CORS for production
    # CORS_ORIGINS will be loaded from .env in production

    # Hosted classifier must not hold a worker for long
    INTENT_SERVICE_TIMEOUT: float = 5.0
    INTENT_SERVICE_FALLBACK: bool = True

    # Identity only from signed tokens
    TRUST_USER_HEADERS: bool = False
    MAX_QUERY_LENGTH: int = 500
