# app/models/intent.py
from datetime import date
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class IntentCategory(str, Enum):
    CONTACT_QUERY = "CONTACT_QUERY"
    ACCOUNT_QUERY = "ACCOUNT_QUERY"
    ACTIVITY_QUERY = "ACTIVITY_QUERY"
    LEAD_QUERY = "LEAD_QUERY"
    QUOTATION_QUERY = "QUOTATION_QUERY"
    PERFORMANCE_QUERY = "PERFORMANCE_QUERY"
    AGGREGATION_QUERY = "AGGREGATION_QUERY"
    COMPARISON_QUERY = "COMPARISON_QUERY"
    TREND_QUERY = "TREND_QUERY"
    PREDICTION_QUERY = "PREDICTION_QUERY"


class AggregationType(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["AggregationType"]:
        """Lenient parsing for service answers ("average" -> avg)"""
        if value is None:
            return None
        normalized = str(value).strip().lower()
        aliases = {"average": "avg", "mean": "avg", "total": "sum", "minimum": "min", "maximum": "max"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


# At least one of the listed tables must be present for the category
CATEGORY_TABLES: Dict[IntentCategory, Tuple[str, ...]] = {
    IntentCategory.CONTACT_QUERY: ("contacts",),
    IntentCategory.ACCOUNT_QUERY: ("accounts", "sub_accounts"),
    IntentCategory.ACTIVITY_QUERY: ("activities", "tasks"),
    IntentCategory.LEAD_QUERY: ("leads",),
    IntentCategory.QUOTATION_QUERY: ("quotes_mbcb", "quotes_signages", "quotes_paint"),
}

ENTITY_CATEGORIES = tuple(CATEGORY_TABLES.keys())


def split_column_ref(ref: str) -> Tuple[str, str]:
    """Split a 'table.column' reference"""
    parts = ref.split(".")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Column reference must look like 'table.column', got '{ref}'")
    return parts[0], parts[1]


class _IntentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


FilterValue = Union[bool, int, float, str]


def _format_bound(value) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


class _BaseFilter(_IntentModel):
    column: str = Field(..., description="Qualified column reference, table.column")

    @field_validator("column")
    @classmethod
    def _check_column(cls, value: str) -> str:
        split_column_ref(value)
        return value

    @property
    def table(self) -> str:
        return split_column_ref(self.column)[0]


class EqualityFilter(_BaseFilter):
    kind: Literal["equality"] = "equality"
    value: FilterValue
    negate: bool = False

    def describe(self) -> str:
        return f"{self.column} {'!=' if self.negate else '='} {self.value}"


class RangeFilter(_BaseFilter):
    kind: Literal["range"] = "range"
    min: Optional[Union[float, str]] = None
    max: Optional[Union[float, str]] = None
    inclusive: bool = True

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min is None and self.max is None:
            raise ValueError("Range filter needs at least one bound")
        return self

    def describe(self) -> str:
        bounds = []
        if self.min is not None:
            bounds.append(f"{'>=' if self.inclusive else '>'} {_format_bound(self.min)}")
        if self.max is not None:
            bounds.append(f"{'<=' if self.inclusive else '<'} {_format_bound(self.max)}")
        return f"{self.column} " + " and ".join(bounds)


class SetFilter(_BaseFilter):
    kind: Literal["set"] = "set"
    values: Tuple[FilterValue, ...]
    negate: bool = False

    @field_validator("values")
    @classmethod
    def _check_values(cls, values):
        if not values:
            raise ValueError("Set filter needs at least one value")
        return values

    def describe(self) -> str:
        return f"{self.column} {'not in' if self.negate else 'in'} ({', '.join(str(v) for v in self.values)})"


class PatternFilter(_BaseFilter):
    kind: Literal["pattern"] = "pattern"
    pattern: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"{self.column} contains '{self.pattern}'"


class NullFilter(_BaseFilter):
    kind: Literal["null"] = "null"
    is_null: bool = True

    def describe(self) -> str:
        return f"{self.column} is {'null' if self.is_null else 'not null'}"


Filter = Annotated[
    Union[EqualityFilter, RangeFilter, SetFilter, PatternFilter, NullFilter],
    Field(discriminator="kind"),
]


class TimeRange(_IntentModel):
    start: Optional[date] = None
    end: Optional[date] = None
    relative: Optional[str] = Field(None, description="e.g. 'last month', 'last 7 days'")
    column: Optional[str] = Field(None, description="Qualified timestamp column, defaults to the table's")

    @model_validator(mode="after")
    def _check_shape(self):
        has_absolute = self.start is not None or self.end is not None
        if bool(self.relative) == has_absolute:
            raise ValueError("Time range needs either a relative expression or start/end dates")
        if self.start and self.end and self.start > self.end:
            raise ValueError("Time range start must not be after end")
        if self.column:
            split_column_ref(self.column)
        return self

    def describe(self) -> str:
        if self.relative:
            return self.relative
        if self.start and self.end:
            return f"{self.start.isoformat()} to {self.end.isoformat()}"
        if self.start:
            return f"since {self.start.isoformat()}"
        return f"before {self.end.isoformat()}"


class SortSpec(_IntentModel):
    column: str
    direction: Literal["ASC", "DESC"] = "ASC"

    @field_validator("column")
    @classmethod
    def _check_column(cls, value: str) -> str:
        split_column_ref(value)
        return value


class QueryIntent(_IntentModel):
    """Structured, typed representation of what a question asks for"""
    category: IntentCategory
    tables: Tuple[str, ...] = Field(..., min_length=1)
    filters: Tuple[Filter, ...] = ()
    aggregation_type: Optional[AggregationType] = None
    aggregation_column: Optional[str] = None
    time_range: Optional[TimeRange] = None
    group_by: Tuple[str, ...] = ()
    sort: Optional[SortSpec] = None
    limit: Optional[int] = Field(None, ge=1)

    @field_validator("tables")
    @classmethod
    def _dedupe_tables(cls, tables):
        seen: List[str] = []
        for table in tables:
            if table not in seen:
                seen.append(table)
        return tuple(seen)

    @model_validator(mode="after")
    def _check_tables(self):
        problems = self.invariant_violations()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def column_refs(self) -> List[str]:
        """Every column the intent references"""
        refs = [f.column for f in self.filters]
        refs.extend(self.group_by)
        if self.aggregation_column:
            refs.append(self.aggregation_column)
        if self.time_range and self.time_range.column:
            refs.append(self.time_range.column)
        if self.sort:
            refs.append(self.sort.column)
        return refs

    def invariant_violations(self) -> List[str]:
        """
        Check that referenced and implied tables are listed in `tables`

        Returns:
            List of human-readable problems, empty when the intent is consistent
        """
        problems = []
        for ref in self.column_refs():
            try:
                table, _ = split_column_ref(ref)
            except ValueError as e:
                problems.append(str(e))
                continue
            if table not in self.tables:
                problems.append(f"Column '{ref}' references table '{table}' which is not in tables")

        implied = CATEGORY_TABLES.get(self.category)
        if implied and not any(t in self.tables for t in implied):
            problems.append(f"{self.category.value} requires one of {', '.join(implied)}")
        return problems

    def validated(self, catalog) -> "QueryIntent":
        """Check every table and column against the schema catalog"""
        for table in self.tables:
            catalog.table(table)
        for ref in self.column_refs():
            catalog.column(ref)
        return self


class ClassificationResult(_IntentModel):
    intent: QueryIntent
    confidence: float = Field(..., ge=0.0, le=1.0)
    explanation: str
    source: Literal["rules", "service"] = "rules"
