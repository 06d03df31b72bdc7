# app/config/__init__.py
from .setting import settings, validate_settings, get_current_environment

__all__ = [
    "settings",
    "validate_settings",
    "get_current_environment",
]
