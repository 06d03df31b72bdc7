# app/utilities/helpers/data_formatters.py
from typing import Any, Dict, List, Optional, Sequence

from fastapi.responses import JSONResponse

from ...models.errors import ErrorResponse, ValidationErrorResponse


def format_error_response(
    error: str,
    message: str,
    status_code: int = 500,
    error_code: Optional[str] = None,
    intent: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Format error response in API format"""
    body = ErrorResponse(error=error, message=message, error_code=error_code, intent=intent)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten pydantic / FastAPI error entries into field + message pairs"""
    formatted = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        formatted.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        })
    return formatted


def format_validation_response(errors: Sequence[Dict[str, Any]], status_code: int = 400) -> JSONResponse:
    body = ValidationErrorResponse(validation_errors=format_validation_errors(errors))
    return JSONResponse(status_code=status_code, content=body.model_dump())
