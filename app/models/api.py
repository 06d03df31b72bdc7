# app/models/api.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional

from .intent import QueryIntent
from .query import ComplexityLevel, QueryOptions


class QuestionRequest(BaseModel):
    """Request body shared by query-explain and intent-preview"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question: str = Field(..., description="User's natural language question")
    options: Optional[QueryOptions] = Field(None, description="Optional limit/offset/order overrides")


class QueryExplainResponse(BaseModel):
    """What SQL would run for the question, without running it"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sql: str
    explanation: str
    affected_tables: List[str]
    estimated_rows: int
    warnings: List[str] = Field(default_factory=list)


class IntentPreviewResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    intent: QueryIntent
    confidence: float
    explanation: str
    estimated_complexity: ComplexityLevel
