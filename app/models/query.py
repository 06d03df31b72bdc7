# app/models/query.py
from enum import Enum
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .intent import AggregationType


class _PlanModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class OrderBy(_PlanModel):
    column: str
    direction: Literal["ASC", "DESC"] = "ASC"


class QueryOptions(_PlanModel):
    """Caller supplied overrides, merged over the intent"""
    limit: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)
    order_by: Tuple[OrderBy, ...] = ()
    group_by: Tuple[str, ...] = ()


class JoinType(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"


class JoinClause(_PlanModel):
    table: str
    join_type: JoinType
    condition: str


class PredicateOrigin(str, Enum):
    INTENT = "intent"
    OWNERSHIP = "ownership"
    TIME_RANGE = "time_range"


class Predicate(_PlanModel):
    column: str = Field(..., description="Qualified column the predicate filters on")
    operator: str
    origin: PredicateOrigin = PredicateOrigin.INTENT


class QueryPlan(_PlanModel):
    """Advisory SQL for an intent. Never executed."""
    sql: str
    params: Tuple[Any, ...] = ()
    affected_tables: Tuple[str, ...]
    explanation: str

    # Structured form used by the heuristics
    primary_table: str
    union_tables: Tuple[str, ...] = ()
    joins: Tuple[JoinClause, ...] = ()
    predicates: Tuple[Predicate, ...] = ()
    group_by: Tuple[str, ...] = ()
    aggregation: Optional[AggregationType] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    select_count: int = 1
    time_range_column: Optional[str] = None

    @property
    def has_predicates(self) -> bool:
        return bool(self.predicates)


class ComplexityLevel(str, Enum):
    SIMPLE = "SIMPLE"
    MODERATE = "MODERATE"
    COMPLEX = "COMPLEX"


class QueryAnalysis(_PlanModel):
    warnings: List[str] = Field(default_factory=list)
    estimated_rows: int = Field(..., ge=1)
