# app/models/health.py
from pydantic import BaseModel
from typing import Optional

class HealthResponse(BaseModel):
    """Health check response"""
    status: str = "healthy"
    service: str = "crm-query-intelligence-api"
    timestamp: Optional[str] = None
    catalog_version: Optional[str] = None
