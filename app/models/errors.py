# app/models/errors.py
from pydantic import BaseModel
from typing import Any, Dict, Optional

class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = False
    error: str
    message: str
    error_code: Optional[str] = None
    intent: Optional[Dict[str, Any]] = None

class ValidationErrorResponse(BaseModel):
    """Validation error response"""
    success: bool = False
    error: str = "Validation failed"
    validation_errors: list
