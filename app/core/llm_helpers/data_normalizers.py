# app/core/llm_helpers/data_normalizers.py
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from ..helpers.date_utils import normalize_relative, parse_date_string
from ..schema_catalog import SchemaCatalog
from ...models.intent import (
    AggregationType, CATEGORY_TABLES, Filter, IntentCategory, QueryIntent, TimeRange, split_column_ref,
)

_filter_adapter = TypeAdapter(Filter)


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    """Coerce a service confidence into [0, 1]"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))


def _known_column(catalog: SchemaCatalog, ref: Any) -> Optional[str]:
    if not isinstance(ref, str) or not catalog.has_column(ref):
        return None
    return ref


def _normalize_filters(raw_filters: Any, catalog: SchemaCatalog) -> List:
    filters = []
    if not isinstance(raw_filters, list):
        return filters
    for raw in raw_filters:
        if not isinstance(raw, dict) or not _known_column(catalog, raw.get("column")):
            logger.debug(f"Dropping service filter on unknown column: {raw}")
            continue
        payload = {k: v for k, v in raw.items() if v is not None}
        try:
            filters.append(_filter_adapter.validate_python(payload))
        except PydanticValidationError as e:
            logger.debug(f"Dropping malformed service filter {raw}: {e.error_count()} error(s)")
    return filters


def _normalize_time_range(raw: Any, catalog: SchemaCatalog) -> Optional[TimeRange]:
    if not isinstance(raw, dict):
        return None
    column = _known_column(catalog, raw.get("column"))
    if column and not catalog.column(column).is_time:
        column = None
    try:
        if raw.get("relative"):
            relative = normalize_relative(str(raw["relative"]))
            return TimeRange(relative=relative, column=column) if relative else None
        start = parse_date_string(raw["start"]) if raw.get("start") else None
        end = parse_date_string(raw["end"]) if raw.get("end") else None
        if start is None and end is None:
            return None
        return TimeRange(start=start, end=end, column=column)
    except (ValueError, PydanticValidationError) as e:
        logger.debug(f"Dropping service time range {raw}: {e}")
        return None


def normalize_service_intent(raw: Dict[str, Any], catalog: SchemaCatalog) -> Optional[Tuple[QueryIntent, float, str]]:
    """
    Turn the hosted service's raw answer into a catalog-valid intent

    Unknown tables and columns are dropped, category tables are added and
    confidence is clamped. Returns None when nothing usable is left.

    Args:
        raw: Tool-call arguments returned by the service
        catalog: Schema catalog to validate against

    Returns:
        (intent, confidence, explanation) or None
    """
    if not isinstance(raw, dict):
        return None

    try:
        category = IntentCategory(str(raw.get("category", "")).strip().upper())
    except ValueError:
        logger.debug(f"Service returned unknown category: {raw.get('category')}")
        return None

    tables: List[str] = []
    for table in raw.get("tables") or []:
        if isinstance(table, str) and catalog.has_table(table) and table not in tables:
            tables.append(table)

    implied = CATEGORY_TABLES.get(category)
    if implied and not any(t in tables for t in implied):
        tables.insert(0, implied[0])

    filters = _normalize_filters(raw.get("filters"), catalog)
    group_by = [ref for ref in (raw.get("group_by") or []) if _known_column(catalog, ref)]
    time_range = _normalize_time_range(raw.get("time_range"), catalog)

    aggregation = AggregationType.parse(raw.get("aggregation_type"))
    aggregation_column = _known_column(catalog, raw.get("aggregation_column"))
    if aggregation_column and not catalog.column(aggregation_column).is_numeric:
        aggregation_column = None
    if aggregation in (None, AggregationType.COUNT):
        aggregation_column = None
    elif aggregation_column is None:
        measures = [f"{t}.{c}" for t in tables for c in catalog.measure_columns(t)]
        if measures:
            aggregation_column = measures[0]
        else:
            aggregation = AggregationType.COUNT

    # Referenced tables must be listed
    for ref in [f.column for f in filters] + group_by + ([aggregation_column] if aggregation_column else []) \
            + ([time_range.column] if time_range and time_range.column else []):
        table, _ = split_column_ref(ref)
        if table not in tables:
            tables.append(table)

    if not tables:
        return None

    limit = raw.get("limit")
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        limit = None

    try:
        intent = QueryIntent(
            category=category,
            tables=tuple(tables),
            filters=tuple(filters),
            aggregation_type=aggregation,
            aggregation_column=aggregation_column,
            time_range=time_range,
            group_by=tuple(group_by),
            limit=limit,
        ).validated(catalog)
    except PydanticValidationError as e:
        logger.warning(f"Service intent failed validation: {e.error_count()} error(s)")
        return None

    explanation = str(raw.get("explanation") or f"Classified as {category.value} by the intent service").strip()
    return intent, clamp_confidence(raw.get("confidence")), explanation
