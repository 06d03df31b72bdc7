# app/api/routes/ai.py
import json
from typing import Any, Dict, Optional, Tuple, Union

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ...config.logging_config import log_user_interaction
from ...core.exceptions import IntentClassificationError, QueryBuildError, ValidationError
from ...middleware.jwt_middleware import get_current_user, get_optional_user
from ...middleware.validation import ValidationMiddleware
from ...models.api import IntentPreviewResponse, QueryExplainResponse, QuestionRequest
from ...models.user import UserContext
from ...services.query_service import QueryExplainService
from ...utilities.helpers.data_formatters import format_error_response, format_validation_response
from ..dependencies import get_query_service

router = APIRouter()

QUERY_EXPLAIN_USAGE = {
    "status": "ok",
    "service": "Query Explain API",
    "description": "Explain what SQL query would be executed without actually running it",
    "usage": {
        "method": "POST",
        "body": {
            "question": "string (required) - The question to explain",
            "options": "object (optional) - limit, offset, orderBy, groupBy overrides",
        },
        "response": {
            "sql": "string - The SQL query that would be executed",
            "explanation": "string - Human-readable explanation of the query",
            "affectedTables": "string[] - Tables that would be queried",
            "estimatedRows": "number - Estimated number of rows returned",
            "warnings": "string[] - Warnings about potentially expensive operations",
        },
    },
    "warnings": {
        "description": "Warnings are generated for:",
        "items": [
            "Full table scans (no WHERE clause)",
            "Missing LIMIT on large result sets",
            "Multiple table joins without filters",
            "LIKE queries with wildcards",
            "Aggregations on large tables",
            "Time range queries without proper indexes",
            "Complex GROUP BY operations",
            "Multiple SELECT statements (sub-queries, unions)",
            "Missing indexes on filtered columns",
        ],
    },
}

INTENT_PREVIEW_USAGE = {
    "status": "ok",
    "service": "Intent Preview API",
    "description": "Preview intent classification without executing queries",
    "usage": {
        "method": "POST",
        "body": {
            "question": "string (required) - The question to classify",
        },
        "response": {
            "intent": "QueryIntent - The classified intent",
            "confidence": "number - Confidence score (0.0 to 1.0)",
            "explanation": "string - Explanation of the classification",
            "estimatedComplexity": "string - SIMPLE, MODERATE, or COMPLEX",
        },
    },
    "examples": [
        {
            "question": "How many contacts do I have?",
            "expectedIntent": "CONTACT_QUERY with COUNT aggregation",
        },
        {
            "question": "Show me accounts with low engagement",
            "expectedIntent": "ACCOUNT_QUERY with filters",
        },
        {
            "question": "Compare quotation values by product this quarter",
            "expectedIntent": "COMPARISON_QUERY over the quotation tables",
        },
    ],
}


async def _read_question_request(request: Request) -> Union[Tuple[str, QuestionRequest], JSONResponse]:
    """
    Parse and validate the JSON body after identity has been resolved

    Returns:
        (sanitized question, request model) or a 400 response
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return format_validation_response([{"loc": ("body",), "msg": "Invalid JSON in request body", "type": "json_invalid"}])

    if not isinstance(payload, dict):
        return format_validation_response([{"loc": ("body",), "msg": "Request body must be a JSON object", "type": "dict_type"}])

    try:
        ValidationMiddleware.validate_question(payload.get("question"))
    except ValidationError as e:
        return format_error_response("Invalid request", str(e), status_code=400, error_code="validation_error")

    try:
        body = QuestionRequest.model_validate(payload)
    except PydanticValidationError as e:
        return format_validation_response(e.errors(include_url=False))

    return ValidationMiddleware.sanitize_question(body.question), body


@router.post("/query-explain", response_model=QueryExplainResponse, response_model_by_alias=True)
async def query_explain(
    request: Request,
    current_user: UserContext = Depends(get_current_user),
    service: QueryExplainService = Depends(get_query_service),
):
    """Explain the SQL a question would run, without executing it"""
    parsed = await _read_question_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    question, body = parsed

    try:
        response = await run_in_threadpool(service.explain, question, current_user, body.options)
        log_user_interaction(current_user.user_id, question, "query-explain")
        return response

    except IntentClassificationError as e:
        logger.error(f"Query explain classification failed for {current_user.user_id}: {e}")
        return format_error_response("Failed to classify intent", str(e) or "An error occurred while analyzing the question",
                                     error_code="classification_error")
    except QueryBuildError as e:
        logger.error(f"Query explain build failed for {current_user.user_id}: {e}")
        return format_error_response("Failed to build query", str(e) or "An error occurred while building the SQL query",
                                     error_code="query_build_error", intent=e.intent_payload())
    except Exception as e:
        logger.exception(f"Query explain unexpected error for {current_user.user_id}: {e}")
        return format_error_response("Internal server error", str(e) or "An unexpected error occurred",
                                     error_code="internal_error")


@router.get("/query-explain")
async def query_explain_usage() -> Dict[str, Any]:
    """Usage document for query-explain"""
    return QUERY_EXPLAIN_USAGE


@router.post("/intent-preview", response_model=IntentPreviewResponse, response_model_by_alias=True)
async def intent_preview(
    request: Request,
    current_user: Optional[UserContext] = Depends(get_optional_user),
    service: QueryExplainService = Depends(get_query_service),
):
    """Classify a question without building or running SQL"""
    parsed = await _read_question_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    question, _ = parsed

    context = current_user or UserContext.anonymous()
    try:
        response = await run_in_threadpool(service.preview, question, context)
        log_user_interaction(context.user_id, question, "intent-preview", response.confidence)
        return response

    except IntentClassificationError as e:
        logger.error(f"Intent preview classification failed for {context.user_id}: {e}")
        return format_error_response("Failed to classify intent", str(e) or "An error occurred while analyzing the question",
                                     error_code="classification_error")
    except Exception as e:
        logger.exception(f"Intent preview unexpected error for {context.user_id}: {e}")
        return format_error_response("Internal server error", str(e) or "An unexpected error occurred",
                                     error_code="internal_error")


@router.get("/intent-preview")
async def intent_preview_usage() -> Dict[str, Any]:
    """Usage document for intent-preview"""
    return INTENT_PREVIEW_USAGE
