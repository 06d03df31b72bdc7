import json
import logging
import pathlib
from decouple import config
from pydantic_settings import BaseSettings
from typing import Dict, Optional, Set

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).parent.parent.parent.parent.resolve()

class BackendBaseSettings(BaseSettings):
    """
    Base settings - single source of truth for every environment.
    Environment-specific classes only override what differs.
    """

    # Application Metadata
    TITLE: str = "CRM Query Intelligence API"
    VERSION: str = "1.0.0"
    TIMEZONE: str = "UTC"
    DESCRIPTION: Optional[str] = "Explains the database query behind a natural-language CRM question"
    DEBUG: bool = config("DEBUG", default=False, cast=bool)

    # Server Configuration
    SERVER_HOST: str = config("API_HOST", default="0.0.0.0", cast=str)
    SERVER_PORT: int = config("API_PORT", default=8000, cast=int)
    API_PREFIX: str = "/api"
    DOCS_URL: str = "/docs"
    OPENAPI_URL: str = "/openapi.json"
    REDOC_URL: str = "/redoc"

    # OpenAI Configuration (hosted intent classification)
    OPENAI_API_KEY: str = config("OPENAI_API_KEY", default="")
    OPENAI_MODEL: str = config("OPENAI_MODEL", default="gpt-4o")
    OPENAI_TEMPERATURE: float = config("OPENAI_TEMPERATURE", default=0.0, cast=float)
    INTENT_SERVICE_ENABLED: bool = config("INTENT_SERVICE_ENABLED", default=False, cast=bool)
    INTENT_SERVICE_TIMEOUT: float = config("INTENT_SERVICE_TIMEOUT", default=10.0, cast=float)
    # Fall back to the rule engine when the hosted service fails
    INTENT_SERVICE_FALLBACK: bool = config("INTENT_SERVICE_FALLBACK", default=True, cast=bool)

    # JWT Configuration
    JWT_SECRET_KEY: str = config("JWT_SECRET_KEY", default="change-me-in-production")
    JWT_ALGORITHM: str = config("JWT_ALGORITHM", default="HS256")
    # Accept x-user-id / x-user-role headers from a trusted gateway
    TRUST_USER_HEADERS: bool = config("TRUST_USER_HEADERS", default=False, cast=bool)

    # Access Control
    PRIVILEGED_ROLES: str = config("PRIVILEGED_ROLES", default="admin")
    DEFAULT_ROLE: str = config("DEFAULT_ROLE", default="user")

    # CORS Configuration
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Logging Configuration
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")
    LOG_TO_FILE: bool = config("LOG_TO_FILE", default=True, cast=bool)
    LOG_DIR: str = config("LOG_DIR", default="logs")
    LOGGING_LEVEL: int = logging.INFO

    # Query Processing Configuration
    MAX_QUERY_LENGTH: int = config("MAX_QUERY_LENGTH", default=1000, cast=int)
    MIN_QUERY_LENGTH: int = config("MIN_QUERY_LENGTH", default=2, cast=int)
    LOW_ENGAGEMENT_THRESHOLD: float = config("LOW_ENGAGEMENT_THRESHOLD", default=40.0, cast=float)
    HIGH_ENGAGEMENT_THRESHOLD: float = config("HIGH_ENGAGEMENT_THRESHOLD", default=70.0, cast=float)

    # Row Estimate Heuristics (placeholders, no feedback from real cardinalities)
    FILTER_REDUCTION_FACTOR: float = config("FILTER_REDUCTION_FACTOR", default=0.2, cast=float)
    JOIN_ROW_MULTIPLIER: float = config("JOIN_ROW_MULTIPLIER", default=0.5, cast=float)
    GROUPED_ROW_CAP: int = config("GROUPED_ROW_CAP", default=50, cast=int)
    DEFAULT_TABLE_SIZE: int = config("DEFAULT_TABLE_SIZE", default=1000, cast=int)
    TABLE_SIZE_OVERRIDES: Dict[str, int] = config("TABLE_SIZE_OVERRIDES", default="{}", cast=json.loads)

    # API Configuration
    API_TITLE: str = TITLE
    API_DESCRIPTION: str = DESCRIPTION or "Explains the database query behind a natural-language CRM question"
    API_VERSION: str = VERSION
    API_HOST: str = SERVER_HOST
    API_PORT: int = SERVER_PORT

    class Config:
        case_sensitive: bool = True
        env_file: str = f"{str(ROOT_DIR)}/.env"
        env_file_encoding: str = "utf-8"
        validate_assignment: bool = True
        extra: str = "ignore"

    @property
    def set_backend_app_attributes(self) -> dict[str, str | bool | None]:
        """
        FastAPI application attributes
        """
        return {
            "title": self.TITLE,
            "version": self.VERSION,
            "debug": self.DEBUG,
            "description": self.DESCRIPTION,
            "docs_url": self.DOCS_URL,
            "openapi_url": self.OPENAPI_URL,
            "redoc_url": self.REDOC_URL,
        }

    @property
    def privileged_role_set(self) -> Set[str]:
        """Lower-cased roles that bypass row-level scoping"""
        return {role.strip().lower() for role in self.PRIVILEGED_ROLES.split(",") if role.strip()}
