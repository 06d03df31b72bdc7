# app/core/query_builder.py
from collections import deque
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .exceptions import QueryBuildError
from .helpers.date_utils import split_relative
from .schema_catalog import Relationship, SchemaCatalog
from ..models.intent import AggregationType, QueryIntent, TimeRange, split_column_ref
from ..models.query import (
    JoinClause, JoinType, OrderBy, Predicate, PredicateOrigin, QueryOptions, QueryPlan,
)
from ..models.user import UserContext

RELATIVE_INTERVALS = {
    "day": "1 day",
    "week": "1 week",
    "month": "1 month",
    "quarter": "3 months",
    "year": "1 year",
}

OWNER_SCOPE_ALIAS = "owner_scope"


class _ParamBinder:
    """Collects bound values and hands out $1, $2, ... placeholders"""

    def __init__(self):
        self.values: List[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class QueryBuilder:
    """
    Deterministically turns a QueryIntent into parameterized, read-only SQL

    Identifiers only ever come from the schema catalog; every value from the
    intent is a bound parameter. Nothing is executed.
    """

    def __init__(self, catalog: SchemaCatalog, privileged_roles: Iterable[str] = ("admin",)):
        self.catalog = catalog
        self.privileged_roles = {r.lower() for r in privileged_roles}

    def build_query(self, intent: QueryIntent, context: UserContext, options: Optional[QueryOptions] = None) -> QueryPlan:
        """
        Build the advisory query plan for an intent

        Args:
            intent: Classified intent
            context: Caller context; unprivileged callers get an ownership predicate
            options: Optional limit/offset/ordering/grouping overrides

        Returns:
            QueryPlan with SQL, bound params and a structured description

        Raises:
            QueryBuildError: Invariant violation, unknown identifier or unscopable table
        """
        options = options or QueryOptions()
        self._validate(intent, options)

        privileged = context.is_privileged(self.privileged_roles)
        primary = intent.tables[0]
        union_tables = self._union_tables(intent)
        union_alias = self.catalog.table(primary).union_group if union_tables else None
        source = union_alias or primary

        def outer_ref(ref: str) -> str:
            table, column = split_column_ref(ref)
            if union_tables and table in union_tables:
                return f"{union_alias}.{column}"
            return ref

        group_by = list(options.group_by) or list(intent.group_by)
        aggregation = intent.aggregation_type
        notes: List[str] = []
        if group_by and aggregation is None:
            aggregation = AggregationType.COUNT
            notes.append("Grouping without an aggregation counts rows per group")
        aggregation_column = None
        if aggregation and aggregation != AggregationType.COUNT:
            aggregation_column = intent.aggregation_column or self._default_measure(intent)

        time_column = self._time_column(intent, primary)
        if intent.time_range and time_column is None:
            notes.append(f"Time range ignored: {primary} has no timestamp column")

        binder = _ParamBinder()
        predicates: List[Predicate] = []
        select_count = 1
        via_tables: List[str] = []

        # FROM, with one UNION ALL branch per member table
        if union_tables:
            shared = self.catalog.shared_columns(union_tables)
            branches = []
            for member in union_tables:
                conditions: List[str] = []
                for f in intent.filters:
                    if f.table in union_tables:
                        column_sql = f"{member}.{split_column_ref(f.column)[1]}"
                        conditions.append(self._render_filter(f, column_sql, binder, predicates))
                if time_column and split_column_ref(time_column)[0] in union_tables:
                    column_sql = f"{member}.{split_column_ref(time_column)[1]}"
                    conditions.extend(self._render_time_range(intent.time_range, column_sql, binder, predicates))
                if not privileged:
                    condition, extra_selects, via = self._ownership_condition(member, context, binder, predicates, intent)
                    conditions.append(condition)
                    select_count += extra_selects
                    if via and via not in via_tables:
                        via_tables.append(via)
                branch = f"SELECT {', '.join(f'{member}.{c}' for c in shared)}, '{member}' AS source_table FROM {member}"
                if conditions:
                    branch += " WHERE " + " AND ".join(conditions)
                branches.append(branch)
            from_sql = f"FROM ({' UNION ALL '.join(branches)}) AS {union_alias}"
            select_count += len(branches)
        else:
            from_sql = f"FROM {primary}"

        join_targets = [t for t in intent.tables[1:] if t not in union_tables]
        joins = self._plan_joins(primary, union_tables, union_alias, join_targets, intent)

        # Outer WHERE: intent filters, time range, ownership
        conditions = []
        for f in intent.filters:
            if union_tables and f.table in union_tables:
                continue
            conditions.append(self._render_filter(f, f.column, binder, predicates))
        if time_column and not (union_tables and split_column_ref(time_column)[0] in union_tables):
            conditions.extend(self._render_time_range(intent.time_range, time_column, binder, predicates))
        if not privileged and not union_tables:
            condition, extra_selects, via = self._ownership_condition(primary, context, binder, predicates, intent)
            conditions.append(condition)
            select_count += extra_selects
            if via:
                via_tables.append(via)

        # SELECT list
        group_sql = [outer_ref(ref) for ref in group_by]
        aggregation_alias = None
        if aggregation == AggregationType.COUNT:
            aggregation_alias = "count"
            select_list = group_sql + ["COUNT(*) AS count"]
        elif aggregation:
            aggregation_alias = f"{aggregation.value}_{split_column_ref(aggregation_column)[1]}"
            select_list = group_sql + [f"{aggregation.value.upper()}({outer_ref(aggregation_column)}) AS {aggregation_alias}"]
        else:
            select_list = [f"{source}.*" if joins else "*"]

        # ORDER BY
        ordering = list(options.order_by)
        if not ordering and intent.sort:
            ordering = [OrderBy(column=intent.sort.column, direction=intent.sort.direction)]
        order_sql = []
        for order in ordering:
            if not aggregation:
                order_sql.append(f"{outer_ref(order.column)} {order.direction}")
            elif order.column in group_by:
                order_sql.append(f"{outer_ref(order.column)} {order.direction}")
            elif order.column == aggregation_column and group_by:
                order_sql.append(f"{aggregation_alias} {order.direction}")
            else:
                notes.append(f"Ordering on {order.column} ignored for an aggregate query")

        limit = options.limit or intent.limit
        offset = options.offset

        lines = [f"SELECT {', '.join(select_list)}", from_sql]
        lines.extend(f"{j.join_type.value} JOIN {j.table} ON {j.condition}" for j in joins)
        if conditions:
            lines.append("WHERE " + " AND ".join(conditions))
        if aggregation and group_sql:
            lines.append("GROUP BY " + ", ".join(group_sql))
        if order_sql:
            lines.append("ORDER BY " + ", ".join(order_sql))
        if limit:
            lines.append(f"LIMIT {int(limit)}")
        if offset:
            lines.append(f"OFFSET {int(offset)}")
        sql = "\n".join(lines)

        affected = list(union_tables or [primary])
        for table in [j.table for j in joins] + via_tables:
            if table not in affected:
                affected.append(table)

        # Union columns are described as the combined alias, as rendered in the SQL
        explanation = self._explain(
            intent, context, privileged, union_tables, primary, joins, aggregation,
            outer_ref(aggregation_column) if aggregation_column else None,
            group_sql, outer_ref(time_column) if time_column else None, order_sql, limit, offset, notes,
        )

        plan = QueryPlan(
            sql=sql,
            params=tuple(binder.values),
            affected_tables=tuple(affected),
            explanation=explanation,
            primary_table=primary,
            union_tables=tuple(union_tables),
            joins=tuple(joins),
            predicates=tuple(predicates),
            group_by=tuple(group_by),
            aggregation=aggregation,
            limit=limit,
            offset=offset,
            select_count=select_count,
            time_range_column=time_column,
        )
        logger.debug(f"Built plan over {list(plan.affected_tables)} with {len(plan.predicates)} predicate(s)")
        return plan

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self, intent: QueryIntent, options: QueryOptions):
        if not intent.tables:
            raise QueryBuildError("Intent has no tables", intent)

        problems = intent.invariant_violations()
        if problems:
            raise QueryBuildError("Intent is inconsistent: " + "; ".join(problems), intent)

        for table in intent.tables:
            if not self.catalog.has_table(table):
                raise QueryBuildError(f"Unknown table '{table}'", intent)

        refs = intent.column_refs() + [o.column for o in options.order_by] + list(options.group_by)
        for ref in refs:
            try:
                table, _ = split_column_ref(ref)
            except ValueError as e:
                raise QueryBuildError(str(e), intent) from e
            if not self.catalog.has_column(ref):
                raise QueryBuildError(f"Column '{ref}' is not in the schema catalog", intent)
            if table not in intent.tables:
                raise QueryBuildError(f"Column '{ref}' belongs to a table outside the intent", intent)

        if intent.aggregation_column and intent.aggregation_type not in (None, AggregationType.COUNT):
            if not self.catalog.column(intent.aggregation_column).is_numeric:
                raise QueryBuildError(f"Cannot {intent.aggregation_type.value} non-numeric column '{intent.aggregation_column}'", intent)

        union_tables = self._union_tables(intent)
        if union_tables:
            shared = set(self.catalog.shared_columns(union_tables))
            for ref in refs:
                table, column = split_column_ref(ref)
                if table in union_tables and column not in shared:
                    raise QueryBuildError(f"Column '{column}' is not shared by {', '.join(union_tables)}", intent)

    def _union_tables(self, intent: QueryIntent) -> List[str]:
        """Union-group members listed in the intent, when the primary table leads such a group"""
        group = self.catalog.table(intent.tables[0]).union_group
        if not group:
            return []
        members = [t for t in intent.tables if self.catalog.table(t).union_group == group]
        return members if len(members) > 1 else []

    def _default_measure(self, intent: QueryIntent) -> str:
        for table in intent.tables:
            spec = self.catalog.table(table)
            if spec.primary_measure:
                return f"{table}.{spec.primary_measure}"
            measures = self.catalog.measure_columns(table)
            if measures:
                return f"{table}.{measures[0]}"
        raise QueryBuildError(f"No numeric column to {intent.aggregation_type.value} on {', '.join(intent.tables)}", intent)

    def _time_column(self, intent: QueryIntent, primary: str) -> Optional[str]:
        if not intent.time_range:
            return None
        if intent.time_range.column:
            return intent.time_range.column
        timestamp = self.catalog.table(primary).timestamp_column
        return f"{primary}.{timestamp}" if timestamp else None

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    def _neighbours(self, node: str, union_tables: List[str], union_alias: Optional[str]) -> List[Tuple[str, Relationship]]:
        if union_alias and node == union_alias:
            shared = set(self.catalog.shared_columns(union_tables))
            found = []
            for member in union_tables:
                for rel in self.catalog.relationships_for(member):
                    member_column = rel.from_column if rel.from_table == member else rel.to_column
                    other = rel.other_side(member)
                    if member_column in shared and other not in union_tables:
                        found.append((other, rel))
            return found
        return [(rel.other_side(node), rel) for rel in self.catalog.relationships_for(node)
                if rel.other_side(node) not in union_tables]

    def _plan_joins(self, primary: str, union_tables: List[str], union_alias: Optional[str],
                    targets: List[str], intent: QueryIntent) -> List[JoinClause]:
        """BFS over relationships in declaration order; each table joined once"""
        source = union_alias or primary
        parents: Dict[str, Tuple[str, Relationship]] = {}
        visited = {source, *union_tables}
        queue = deque([source])
        while queue:
            node = queue.popleft()
            for other, rel in self._neighbours(node, union_tables, union_alias):
                if other in visited:
                    continue
                visited.add(other)
                parents[other] = (node, rel)
                queue.append(other)

        joins: List[JoinClause] = []
        joined = {source}
        for target in targets:
            if target in joined:
                continue
            if target not in parents:
                raise QueryBuildError(f"No relationship path from {primary} to {target}", intent)
            path = []
            node = target
            while node != source:
                previous, rel = parents[node]
                path.append((node, rel))
                node = previous
            for table, rel in reversed(path):
                if table in joined:
                    continue
                joined.add(table)
                joins.append(JoinClause(
                    table=table,
                    join_type=JoinType.LEFT if rel.nullable else JoinType.INNER,
                    condition=self._join_condition(rel, union_tables, union_alias),
                ))
        return joins

    @staticmethod
    def _join_condition(rel: Relationship, union_tables: List[str], union_alias: Optional[str]) -> str:
        left = union_alias if rel.from_table in union_tables else rel.from_table
        right = union_alias if rel.to_table in union_tables else rel.to_table
        return f"{left}.{rel.from_column} = {right}.{rel.to_column}"

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @staticmethod
    def _render_filter(f, column_sql: str, binder: _ParamBinder, predicates: List[Predicate]) -> str:
        def record(operator: str):
            predicates.append(Predicate(column=column_sql, operator=operator, origin=PredicateOrigin.INTENT))

        if f.kind == "equality":
            operator = "!=" if f.negate else "="
            record(operator)
            return f"{column_sql} {operator} {binder.bind(f.value)}"

        if f.kind == "range":
            parts = []
            if f.min is not None:
                operator = ">=" if f.inclusive else ">"
                record(operator)
                parts.append(f"{column_sql} {operator} {binder.bind(f.min)}")
            if f.max is not None:
                operator = "<=" if f.inclusive else "<"
                record(operator)
                parts.append(f"{column_sql} {operator} {binder.bind(f.max)}")
            return " AND ".join(parts)

        if f.kind == "set":
            operator = "NOT IN" if f.negate else "IN"
            record(operator)
            placeholders = ", ".join(binder.bind(v) for v in f.values)
            return f"{column_sql} {operator} ({placeholders})"

        if f.kind == "pattern":
            record("ILIKE")
            return f"{column_sql} ILIKE {binder.bind('%' + _escape_like(f.pattern) + '%')}"

        operator = "IS NULL" if f.is_null else "IS NOT NULL"
        record(operator)
        return f"{column_sql} {operator}"

    @staticmethod
    def _render_time_range(time_range: TimeRange, column_sql: str, binder: _ParamBinder,
                           predicates: List[Predicate]) -> List[str]:
        def record(operator: str):
            predicates.append(Predicate(column=column_sql, operator=operator, origin=PredicateOrigin.TIME_RANGE))

        conditions = []
        if time_range.relative:
            kind, amount, unit = split_relative(time_range.relative)
            if kind == "last_n":
                record(">=")
                return [f"{column_sql} >= NOW() - INTERVAL '{amount} {unit}{'s' if amount != 1 else ''}'"]
            truncated = f"DATE_TRUNC('{unit}', NOW())"
            if kind in ("today", "this"):
                record(">=")
                return [f"{column_sql} >= {truncated}"]
            # yesterday / last <unit>: the whole previous period
            record(">=")
            record("<")
            return [
                f"{column_sql} >= {truncated} - INTERVAL '{RELATIVE_INTERVALS[unit]}'",
                f"{column_sql} < {truncated}",
            ]

        if time_range.start:
            record(">=")
            conditions.append(f"{column_sql} >= {binder.bind(time_range.start)}")
        if time_range.end:
            record("<")
            conditions.append(f"{column_sql} < {binder.bind(time_range.end + timedelta(days=1))}")
        return conditions

    def _ownership_condition(self, table: str, context: UserContext, binder: _ParamBinder,
                             predicates: List[Predicate], intent: QueryIntent) -> Tuple[str, int, Optional[str]]:
        """
        Row-level scoping predicate for one table

        Returns:
            (sql, extra SELECT constructs, table read through or None)
        """
        spec = self.catalog.table(table)
        owner = context.owner_id

        def owner_match(qualifier: str, owner_table: str, columns: Tuple[str, ...]) -> str:
            parts = []
            for column in columns:
                parts.append(f"{qualifier}.{column} = {binder.bind(owner)}")
                predicates.append(Predicate(column=f"{owner_table}.{column}", operator="=", origin=PredicateOrigin.OWNERSHIP))
            return parts[0] if len(parts) == 1 else "(" + " OR ".join(parts) + ")"

        if spec.owner_columns:
            return owner_match(table, table, spec.owner_columns), 0, None

        link = spec.owned_through
        if link and self.catalog.table(link.via_table).owner_columns:
            via = self.catalog.table(link.via_table)
            match = owner_match(OWNER_SCOPE_ALIAS, via.name, via.owner_columns)
            sql = (
                f"EXISTS (SELECT 1 FROM {via.name} AS {OWNER_SCOPE_ALIAS} "
                f"WHERE {OWNER_SCOPE_ALIAS}.{link.via_column} = {table}.{link.local_column} AND {match})"
            )
            return sql, 1, via.name

        raise QueryBuildError(f"Table '{table}' cannot be scoped to its owner", intent)

    # ------------------------------------------------------------------
    # Explanation
    # ------------------------------------------------------------------

    @staticmethod
    def _explain(intent, context, privileged, union_tables, primary, joins, aggregation, aggregation_column,
                 group_by, time_column, order_sql, limit, offset, notes) -> str:
        if union_tables:
            tables = f"Queries {', '.join(union_tables)} combined with UNION ALL"
        else:
            tables = f"Queries {primary}"
        if joins:
            tables += " joined with " + ", ".join(f"{j.table} ({j.join_type.value} JOIN)" for j in joins)
        parts = [tables]

        if intent.filters:
            parts.append("Filters: " + "; ".join(f.describe() for f in intent.filters))

        if aggregation == AggregationType.COUNT:
            parts.append("Aggregation: count of rows" + (f" grouped by {', '.join(group_by)}" if group_by else ""))
        elif aggregation:
            parts.append(f"Aggregation: {aggregation.value} of {aggregation_column}"
                         + (f" grouped by {', '.join(group_by)}" if group_by else ""))

        if intent.time_range and time_column:
            parts.append(f"Time range: {intent.time_range.describe()} on {time_column}")

        if order_sql:
            parts.append("Ordered by " + ", ".join(order_sql))
        if limit:
            parts.append(f"Limited to {limit} rows" + (f" starting at row {offset + 1}" if offset else ""))

        if privileged:
            parts.append(f"No ownership scoping for role '{context.role}'")
        else:
            parts.append(f"Scoped to records owned by {context.owner_id}")

        parts.extend(notes)
        return ". ".join(parts) + "."
