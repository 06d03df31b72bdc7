from app.config.settings.base import BackendBaseSettings
from app.config.settings.environment import Environment

class BackendStageSettings(BackendBaseSettings):
    """Staging-specific settings"""
    DESCRIPTION: str | None = "Staging Environment - CRM Query Intelligence API"
    DEBUG: bool = True
    ENVIRONMENT: Environment = Environment.STAGING

    # Staging sits behind the gateway that resolves sessions
    # TRUST_USER_HEADERS: bool = True
