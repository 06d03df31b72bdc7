# app/api/routes/health.py
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from loguru import logger

from ...config.setting import settings
from ...core.schema_catalog import CATALOG_VERSION
from ...models.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        catalog_version=CATALOG_VERSION,
    )


@router.get("/ready")
async def readiness_check(request: Request) -> Dict[str, Any]:
    """Readiness check: pipeline built and catalog loaded"""
    try:
        service = getattr(request.app.state, "query_service", None)
        if service is None:
            return {
                "status": "not_ready",
                "catalog": "not_loaded",
                "ready": False
            }

        status_info = service.status()
        return {
            "status": "ready",
            "catalog": "loaded",
            "catalog_version": status_info["catalog_version"],
            "tables": status_info["tables"],
            "intent_service": status_info["intent_mode"],
            "intent_model": settings.OPENAI_MODEL if status_info["intent_mode"] == "service" else "n/a",
            "ready": True
        }

    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return {
            "status": "not_ready",
            "catalog": "error",
            "ready": False,
            "error": str(e)
        }
