# app/config/setting.py
"""
Settings manager - picks the settings class for the current environment.
Other modules import `settings` from here.
"""
from decouple import config
from app.config.settings.base import BackendBaseSettings
from app.config.settings.development import BackendDevSettings
from app.config.settings.staging import BackendStageSettings
from app.config.settings.production import BackendProdSettings
from app.config.settings.testing import BackendTestSettings

# Determine environment from .env file
ENV = config("ENVIRONMENT", default="DEV")

def get_settings() -> BackendBaseSettings:
    """
    Factory function to return appropriate settings based on environment
    """
    env_map = {
        "DEV": BackendDevSettings,
        "DEVELOPMENT": BackendDevSettings,
        "STAGE": BackendStageSettings,
        "STAGING": BackendStageSettings,
        "PROD": BackendProdSettings,
        "PRODUCTION": BackendProdSettings,
        "TEST": BackendTestSettings,
        "TESTING": BackendTestSettings,
    }

    settings_class = env_map.get(ENV.upper(), BackendDevSettings)
    return settings_class()


# Global settings instance
settings = get_settings()


def validate_settings():
    """Validate critical settings on startup"""
    errors = []

    if settings.INTENT_SERVICE_ENABLED and not settings.OPENAI_API_KEY:
        errors.append("OPENAI_API_KEY must be set when INTENT_SERVICE_ENABLED is on")

    if settings.INTENT_SERVICE_TIMEOUT <= 0:
        errors.append("INTENT_SERVICE_TIMEOUT must be positive")

    if not 0 < settings.FILTER_REDUCTION_FACTOR <= 1:
        errors.append("FILTER_REDUCTION_FACTOR must be in (0, 1]")

    if settings.JOIN_ROW_MULTIPLIER <= 0:
        errors.append("JOIN_ROW_MULTIPLIER must be positive")

    if any(size < 1 for size in settings.TABLE_SIZE_OVERRIDES.values()):
        errors.append("TABLE_SIZE_OVERRIDES values must be at least 1")

    if not settings.privileged_role_set:
        errors.append("PRIVILEGED_ROLES must name at least one role")

    if getattr(settings, "ENVIRONMENT", None) == "PROD" and settings.JWT_SECRET_KEY == "change-me-in-production":
        errors.append("JWT_SECRET_KEY should be changed from default value")

    if errors:
        raise ValueError(f"Configuration errors: {', '.join(errors)}")

    return True


def get_current_environment():
    """Get current environment name"""
    return getattr(settings, 'ENVIRONMENT', 'DEV')
