# app/api/dependencies.py
from fastapi import HTTPException, Request
from loguru import logger

from ..services.query_service import QueryExplainService


def get_query_service(request: Request) -> QueryExplainService:
    """Pipeline built at start-up and stored on app.state"""
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        logger.error("Query explain service requested before start-up completed")
        raise HTTPException(503, "Service is starting up")
    return service
