# app/models/__init__.py
from .intent import (
    IntentCategory, AggregationType, QueryIntent, ClassificationResult, TimeRange, SortSpec,
    EqualityFilter, RangeFilter, SetFilter, PatternFilter, NullFilter, Filter,
)
from .user import UserContext, Permission
from .query import (
    QueryOptions, OrderBy, QueryPlan, JoinClause, JoinType, Predicate, PredicateOrigin,
    QueryAnalysis, ComplexityLevel,
)
from .api import QuestionRequest, QueryExplainResponse, IntentPreviewResponse
from .health import HealthResponse
from .errors import ErrorResponse, ValidationErrorResponse

__all__ = [
    # Intent models
    "IntentCategory", "AggregationType", "QueryIntent", "ClassificationResult", "TimeRange", "SortSpec",
    "EqualityFilter", "RangeFilter", "SetFilter", "PatternFilter", "NullFilter", "Filter",

    # Caller models
    "UserContext", "Permission",

    # Plan models
    "QueryOptions", "OrderBy", "QueryPlan", "JoinClause", "JoinType", "Predicate", "PredicateOrigin",
    "QueryAnalysis", "ComplexityLevel",

    # API models
    "QuestionRequest", "QueryExplainResponse", "IntentPreviewResponse", "HealthResponse",

    # Error models
    "ErrorResponse", "ValidationErrorResponse"
]
