from app.config.settings.base import BackendBaseSettings
from app.config.settings.environment import Environment

class BackendTestSettings(BackendBaseSettings):
    """Settings used by the test suite"""
    DESCRIPTION: str | None = "Test Environment - CRM Query Intelligence API"
    DEBUG: bool = True
    ENVIRONMENT: Environment = Environment.TESTING

    LOG_LEVEL: str = "WARNING"
    LOG_TO_FILE: bool = False

    JWT_SECRET_KEY: str = "test-secret-key"
    JWT_ALGORITHM: str = "HS256"

    # The hosted classifier is never reached from tests
    INTENT_SERVICE_ENABLED: bool = False
    OPENAI_API_KEY: str = ""
