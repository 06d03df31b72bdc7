# app/core/query_analyzer.py
import math
from typing import List, Optional

from loguru import logger

from .schema_catalog import SchemaCatalog
from ..models.intent import QueryIntent
from ..models.query import QueryAnalysis, QueryPlan

WARN_NO_WHERE = "⚠️ No WHERE clause detected - this may result in a full table scan"
WARN_NO_LIMIT = "⚠️ No LIMIT clause - query may return a large number of rows"
WARN_JOINS_WITHOUT_FILTERS = "⚠️ Multiple table joins without filters - may be expensive"
WARN_WILDCARD = "⚠️ LIKE query with wildcard - may not use indexes efficiently"
WARN_LARGE_AGGREGATION = "⚠️ Aggregation on potentially large table - may take time"
WARN_TIME_RANGE = "⚠️ Time range filter may not use timestamp indexes efficiently"
WARN_GROUP_BY = "⚠️ GROUP BY across multiple tables - may be computationally expensive"
WARN_MULTIPLE_SELECTS = "⚠️ Complex query with multiple SELECT statements detected"


def missing_index_warning(table: str) -> str:
    return f'⚠️ Table "{table}" may benefit from additional indexes on filtered columns'


class QueryAnalyzer:
    """
    Cost and warning heuristics over a QueryPlan

    Reads the plan's structured form and the catalog only. Never raises:
    anything it cannot characterize gets the unreduced estimate.
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        filter_factor: float = 0.2,
        join_multiplier: float = 0.5,
        grouped_cap: int = 50,
        default_table_size: int = 1000,
    ):
        self.catalog = catalog
        self.filter_factor = filter_factor
        self.join_multiplier = join_multiplier
        self.grouped_cap = grouped_cap
        self.default_table_size = default_table_size

    def analyze(self, plan: QueryPlan, intent: Optional[QueryIntent] = None) -> QueryAnalysis:
        """
        Derive warnings and a row estimate for a plan

        Args:
            plan: Plan produced by the query builder
            intent: Intent the plan was built from (time range check)

        Returns:
            QueryAnalysis with warnings in a fixed order and estimated_rows >= 1
        """
        try:
            warnings = self.warnings_for(plan, intent)
        except Exception as e:
            logger.error(f"Warning heuristics failed: {e}")
            warnings = []

        try:
            estimated_rows = self.estimate_rows(plan)
        except Exception as e:
            logger.error(f"Row estimate failed, using unreduced estimate: {e}")
            estimated_rows = self._base_size(plan)

        return QueryAnalysis(warnings=warnings, estimated_rows=max(1, estimated_rows))

    def warnings_for(self, plan: QueryPlan, intent: Optional[QueryIntent] = None) -> List[str]:
        warnings = []
        joined_count = 1 + len(plan.joins)

        if not plan.has_predicates:
            warnings.append(WARN_NO_WHERE)

        if plan.aggregation is None and plan.limit is None:
            warnings.append(WARN_NO_LIMIT)

        if joined_count >= 3 and not plan.has_predicates:
            warnings.append(WARN_JOINS_WITHOUT_FILTERS)

        if any(p.operator == "ILIKE" for p in plan.predicates):
            warnings.append(WARN_WILDCARD)

        if plan.aggregation is not None:
            sources = plan.union_tables or (plan.primary_table,)
            if any(not self._is_small(t) for t in sources):
                warnings.append(WARN_LARGE_AGGREGATION)

        if intent is not None and intent.time_range is not None:
            if not self.catalog.is_time_column(plan.time_range_column):
                warnings.append(WARN_TIME_RANGE)

        # Union members count as several tables; the EXISTS scoping table does not
        if plan.group_by and (plan.joins or plan.union_tables):
            warnings.append(WARN_GROUP_BY)

        if plan.select_count > 1:
            warnings.append(WARN_MULTIPLE_SELECTS)

        # One warning per table, in predicate order
        flagged: List[str] = []
        for predicate in plan.predicates:
            table = predicate.column.split(".", 1)[0]
            if table in flagged:
                continue
            if not self.catalog.is_indexed(predicate.column):
                flagged.append(table)
        warnings.extend(missing_index_warning(t) for t in flagged)

        return warnings

    def estimate_rows(self, plan: QueryPlan) -> int:
        """Rough, order-of-magnitude row estimate"""
        table_count = max(1, len(plan.affected_tables))

        if plan.aggregation is not None:
            if not plan.group_by:
                return 1
            return max(1, min(self.grouped_cap, 10 * table_count))

        estimate = float(self._base_size(plan))
        if plan.has_predicates:
            estimate *= self.filter_factor
        if plan.joins:
            estimate *= table_count * self.join_multiplier
        if plan.limit:
            estimate = min(estimate, plan.limit)
        return max(1, math.floor(estimate))

    def _table_size(self, table: str) -> int:
        if not self.catalog.has_table(table):
            return self.default_table_size
        return self.catalog.table(table).size_estimate

    def _is_small(self, table: str) -> bool:
        return self.catalog.has_table(table) and self.catalog.table(table).small

    def _base_size(self, plan: QueryPlan) -> int:
        if plan.union_tables:
            return sum(self._table_size(t) for t in plan.union_tables)
        return self._table_size(plan.primary_table)
