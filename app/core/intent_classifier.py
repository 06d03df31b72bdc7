# app/core/intent_classifier.py
import re
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from .exceptions import IntentClassificationError, IntentServiceError
from .helpers.date_utils import extract_absolute_range, normalize_relative
from .llm_helpers.data_normalizers import normalize_service_intent
from .schema_catalog import SchemaCatalog
from ..models.intent import (
    AggregationType, CATEGORY_TABLES, ClassificationResult, EqualityFilter, IntentCategory,
    NullFilter, PatternFilter, QueryIntent, RangeFilter, SetFilter, SortSpec, TimeRange,
)
from ..models.user import UserContext

# Entity keywords in priority order: (category, table, pattern)
ENTITY_PATTERNS: List[Tuple[IntentCategory, str, str]] = [
    (IntentCategory.ACCOUNT_QUERY, "sub_accounts", r"\bsub[- ]?accounts?\b|\bbranch(?:es)?\b"),
    (IntentCategory.ACCOUNT_QUERY, "accounts", r"(?<!sub-)(?<!sub )\baccounts?\b|\bcompan(?:y|ies)\b|\bclients?\b"),
    (IntentCategory.CONTACT_QUERY, "contacts", r"\bcontacts?\b|(?<!sales )\bpeople\b|\bpersons?\b"),
    (IntentCategory.ACTIVITY_QUERY, "activities", r"\bactivit(?:y|ies)\b|\bcalls?\b(?!\s+status)|\bmeetings?\b|\bvisits?\b|\bemails\b|\bnotes\b"),
    (IntentCategory.ACTIVITY_QUERY, "tasks", r"\btasks?\b|\bto-?dos?\b|\bfollow[- ]?ups\b"),
    (IntentCategory.LEAD_QUERY, "leads", r"\bleads?\b|\bpipeline\b"),
    (IntentCategory.QUOTATION_QUERY, "quotes", r"\bquot(?:e|es|ation|ations)\b|\bproposals?\b|\bmbcb\b|\bsignages?\b|\bpaint(?:s|ing)?\b"),
]

EMPLOYEE_PATTERN = r"\bemployees?\b|\bsales ?(?:reps?|persons?|people|team)\b|\busers?\b|\bteam\b|\breps?\b"

QUOTE_PRODUCTS: List[Tuple[str, str]] = [
    ("quotes_mbcb", r"\bmbcb\b"),
    ("quotes_signages", r"\bsignages?\b"),
    ("quotes_paint", r"\bpaint(?:s|ing)?\b"),
]

# Checked in this order; the first hit wins
ANALYTIC_PATTERNS: List[Tuple[IntentCategory, str]] = [
    (IntentCategory.PREDICTION_QUERY, r"\bpredict\w*|\bforecast\w*|\blikely to\b|\bchances? (?:of|to)\b|\bwill (?:convert|close|win)\b"),
    (IntentCategory.COMPARISON_QUERY, r"\bcompar\w*|\bversus\b|\bvs\.?(?=\s)|\bdifference between\b"),
    (IntentCategory.TREND_QUERY, r"\btrends?\b|\bover time\b|\bgrowth\b|\b(?:month|week|year) over (?:month|week|year)\b|\bmonthly\b|\bweekly\b"),
    (IntentCategory.PERFORMANCE_QUERY, r"\bperform\w*|\bconversion rate\b|\bwin rate\b|\bproductiv\w*|\bleaderboard\b"),
]

ANALYTIC_DEFAULT_TABLES: Dict[IntentCategory, Tuple[str, ...]] = {
    IntentCategory.PERFORMANCE_QUERY: ("activities",),
    IntentCategory.TREND_QUERY: ("activities",),
    IntentCategory.COMPARISON_QUERY: ("leads",),
    IntentCategory.PREDICTION_QUERY: ("leads",),
    IntentCategory.AGGREGATION_QUERY: ("contacts",),
}

AGGREGATION_PATTERNS: List[Tuple[AggregationType, str]] = [
    (AggregationType.COUNT, r"\bhow many\b|\bcount\b|\bnumber of\b|\btotal number\b"),
    (AggregationType.AVG, r"\baverage\b|\bavg\b|\bmean\b"),
    (AggregationType.SUM, r"\btotal\b|\bsum\b"),
    (AggregationType.MAX, r"\bhighest\b|\bmaximum\b|\bmax\b|\blargest\b|\bbiggest\b"),
    (AggregationType.MIN, r"\blowest\b|\bminimum\b|\bmin\b|\bsmallest\b"),
]

MEASURE_SYNONYMS: List[Tuple[str, Tuple[str, ...]]] = [
    (r"engagement", ("engagement_score",)),
    (r"win probability|probability|win chance", ("ai_win_probability",)),
    (r"lead score|score|rating", ("score", "engagement_score")),
    (r"potential", ("potential_value",)),
    (r"value|cost|amount|revenue|price|worth", ("final_total_cost", "potential_value")),
    (r"quantity|qty", ("quantity", "quantity_rm")),
    (r"area|sq ?ft|square feet", ("area_sq_ft",)),
    (r"weight", ("total_weight_per_rm",)),
]

TIME_COLUMN_HINTS: List[Tuple[str, str]] = [
    (r"\bdue\b", "tasks.due_date"),
    (r"\bfollow[- ]?up\b", "contacts.follow_up_date"),
    (r"\blast activ\w*", "accounts.last_activity_at"),
]

OWNERSHIP_PATTERN = r"\bmy\b|\bmine\b|\bi (?:have|own|created|manage)\b|\bassigned to me\b|\bby me\b"
EMPLOYEE_WORDS = r"employees?|reps?|owners?|sales ?persons?|users?|assignees?|persons?"

_NEGATION_PREFIX = re.compile(r"\b(?:not|non|excluding|except|other than|isn't|aren't)[\s-]+(?:in\s+|status\s+)?$")
_COMPARISON = re.compile(
    r"(?P<subject>[a-z_ ]{3,40}?)\s+(?:is\s+|of\s+)?"
    r"(?P<op>above|over|greater than|more than|higher than|at least|below|under|less than|lower than|at most|>=|<=|>|<)"
    r"\s+(?P<num>\d+(?:\.\d+)?)"
)
_MEASURE_BETWEEN = re.compile(r"(?P<subject>[a-z_ ]{3,40}?)\s+between\s+(?P<low>\d+(?:\.\d+)?)\s+and\s+(?P<high>\d+(?:\.\d+)?)")
_QUOTED = re.compile(r"[\"“]([^\"”]{2,60})[\"”]")
_NAMED = re.compile(r"\b(?:named|called)\s+(?!(?:last|this|today|yesterday|in|on|since|before)\b)([a-z0-9&.\-]+(?:\s+[a-z0-9&.\-]+)*?)(?=\s+(?:in|with|from|that|who|which|last|this|since|before)\b|[?.!,]|$)")
_NULL_CHECK = re.compile(r"\b(without|missing|no|with)\s+(?:an?\s+|any\s+)?(email|phone|designation|purpose)\b")
_GROUP_BY = re.compile(r"\b(?:grouped by|broken down by|for each|by|per)\s+([a-z][a-z_\-]*(?:\s+[a-z][a-z_\-]*)?)")
_TOP_N = re.compile(r"\btop\s+(\d{1,4})\b")
_LATEST_N = re.compile(r"\b(latest|newest|most recent|recent|last|first)\s+(\d{1,4})\b(?!\s*(?:days?|weeks?|months?|quarters?|years?)\b)")

BASE_CONFIDENCE = 0.35
MATCH_BONUS = 0.35
FEATURE_BONUS = 0.1
MAX_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.2
MAX_FALLBACK_CONFIDENCE = 0.3


class IntentClassifier:
    """
    Maps a free-text CRM question to a typed QueryIntent

    The rule engine always runs. When an intent service is configured its
    answer is normalized against the catalog and preferred over the rules.
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        intent_service=None,
        privileged_roles: Iterable[str] = ("admin",),
        fallback_to_rules: bool = True,
        low_engagement_threshold: float = 40.0,
        high_engagement_threshold: float = 70.0,
    ):
        self.catalog = catalog
        self.intent_service = intent_service
        self.privileged_roles = {r.lower() for r in privileged_roles}
        self.fallback_to_rules = fallback_to_rules
        self.low_engagement_threshold = low_engagement_threshold
        self.high_engagement_threshold = high_engagement_threshold

        # Multi-word enum values are masked before keyword matching ("Quotation Sent" is not a quotation)
        self._masked_phrases = sorted(
            {v.lower() for _, col in catalog.enum_columns() for v in col.enum_values if " " in v},
            key=len, reverse=True,
        )

    def classify(self, question: str, context: Optional[UserContext] = None) -> ClassificationResult:
        """
        Classify a question into exactly one intent category

        Args:
            question: Natural language question
            context: Optional caller context, used for ownership phrasing

        Returns:
            ClassificationResult with a catalog-validated intent

        Raises:
            IntentClassificationError: Empty question, or service failure without fallback
        """
        if not question or not question.strip():
            raise IntentClassificationError("Question cannot be empty")

        text = " ".join(question.split())
        rule_result = self._classify_with_rules(text, context)

        if self.intent_service is None:
            return rule_result

        try:
            raw = self.intent_service.classify(text, context, self.catalog)
        except IntentServiceError as e:
            if not self.fallback_to_rules:
                raise IntentClassificationError(f"Intent service failed: {e}") from e
            logger.warning(f"Intent service failed, using rule-based intent: {e}")
            return rule_result

        normalized = normalize_service_intent(raw, self.catalog)
        if normalized is None:
            logger.info(f"Intent service answer unusable for '{text[:50]}', using rule-based intent")
            return rule_result

        intent, confidence, explanation = normalized
        logger.debug(f"Service intent: {intent.category.value} over {list(intent.tables)} ({confidence:.2f})")
        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            explanation=explanation + self._scope_note(text.lower(), context),
            source="service",
        )

    # ------------------------------------------------------------------
    # Rule engine
    # ------------------------------------------------------------------

    def _classify_with_rules(self, text: str, context: Optional[UserContext]) -> ClassificationResult:
        lowered = text.lower()
        masked = self._mask(lowered)

        entity_hits = self._match_entities(masked)
        analytic = self._match_analytic(masked)
        aggregation = self._detect_aggregation(masked)
        mentions_employees = re.search(EMPLOYEE_PATTERN, masked) is not None

        entity_categories = []
        for _, category, _, _ in entity_hits:
            if category not in entity_categories:
                entity_categories.append(category)

        matched = True
        if analytic:
            category = analytic[0]
        elif aggregation and len(entity_categories) != 1:
            category = IntentCategory.AGGREGATION_QUERY
        elif entity_categories:
            category = entity_categories[0]
        elif mentions_employees:
            category = IntentCategory.PERFORMANCE_QUERY
        else:
            category = IntentCategory.CONTACT_QUERY
            matched = False

        tables = self._resolve_tables(category, entity_hits, masked, mentions_employees)

        features: List[str] = []
        filters = []
        notes: List[str] = []

        owner_filter, owner_tables = self._ownership_filter(lowered, tables, context)
        if owner_filter is not None:
            tables.extend(t for t in owner_tables if t not in tables)
            filters.append(owner_filter)

        filters.extend(self._extract_filters(text, lowered, tables))

        aggregation_type = aggregation[0] if aggregation else None
        aggregation_column = None
        if aggregation_type and aggregation_type != AggregationType.COUNT:
            aggregation_column = self._find_measure(lowered, tables) or self._primary_measure(tables)
            if aggregation_column is None:
                notes.append(f"{aggregation_type.value} needs a numeric column, counting rows instead")
                aggregation_type = AggregationType.COUNT

        time_range = self._detect_time_range(text, lowered, tables)

        limit, sort = self._detect_limit_and_sort(lowered, tables)
        group_by: List[str] = []
        if aggregation_type and limit is None:
            group_by = self._detect_group_by(lowered, tables)

        if aggregation_type:
            features.append("aggregation")
        if time_range:
            features.append("time range")
        features.extend("filter" for _ in filters)
        if group_by:
            features.append("grouping")
        if limit:
            features.append("limit")

        try:
            intent = QueryIntent(
                category=category,
                tables=tuple(tables),
                filters=tuple(filters),
                aggregation_type=aggregation_type,
                aggregation_column=aggregation_column,
                time_range=time_range,
                group_by=tuple(group_by),
                sort=sort,
                limit=limit,
            ).validated(self.catalog)
        except PydanticValidationError as e:
            # Extracted details conflict; keep the category and tables only
            logger.warning(f"Dropping extracted details for '{text[:50]}': {e.error_count()} problem(s)")
            intent = QueryIntent(category=category, tables=tuple(tables)).validated(self.catalog)
            features = []

        confidence = self._confidence(matched, len(features))
        keyword = analytic[1] if analytic else (entity_hits[0][3] if entity_hits else None)
        explanation = self._explain(intent, keyword, matched, notes)
        explanation += self._scope_note(lowered, context)

        logger.debug(f"Rule intent: {intent.category.value} over {list(intent.tables)} ({confidence:.2f})")
        return ClassificationResult(intent=intent, confidence=confidence, explanation=explanation, source="rules")

    def _mask(self, lowered: str) -> str:
        for phrase in self._masked_phrases:
            lowered = re.sub(re.escape(phrase), lambda m: " " * len(m.group(0)), lowered)
        return lowered

    def _match_entities(self, masked: str) -> List[Tuple[int, IntentCategory, str, str]]:
        """(position, category, table, keyword) for every entity mention, earliest first"""
        hits = []
        for category, table, pattern in ENTITY_PATTERNS:
            match = re.search(pattern, masked)
            if match:
                hits.append((match.start(), category, table, match.group(0)))
        hits.sort(key=lambda hit: hit[0])
        return hits

    def _match_analytic(self, masked: str) -> Optional[Tuple[IntentCategory, str]]:
        for category, pattern in ANALYTIC_PATTERNS:
            match = re.search(pattern, masked)
            if match:
                return category, match.group(0)
        return None

    def _detect_aggregation(self, masked: str) -> Optional[Tuple[AggregationType, str]]:
        for aggregation, pattern in AGGREGATION_PATTERNS:
            match = re.search(pattern, masked)
            if match:
                return aggregation, match.group(0)
        return None

    def _resolve_tables(self, category, entity_hits, masked: str, mentions_employees: bool) -> List[str]:
        tables: List[str] = []

        def add(table: str):
            if table == "quotes":
                products = [t for t, pattern in QUOTE_PRODUCTS if re.search(pattern, masked)]
                for t in products or list(CATEGORY_TABLES[IntentCategory.QUOTATION_QUERY]):
                    add(t)
            elif table not in tables and self.catalog.has_table(table):
                tables.append(table)

        # Tables of the chosen category lead
        for _, hit_category, table, _ in entity_hits:
            if hit_category == category:
                add(table)
        for _, hit_category, table, _ in entity_hits:
            add(table)
        if mentions_employees:
            add("users")

        if not tables:
            for table in ANALYTIC_DEFAULT_TABLES.get(category, CATEGORY_TABLES.get(category, ("contacts",))):
                add(table)
        return tables

    def _ownership_filter(self, lowered: str, tables: List[str], context: Optional[UserContext]):
        """
        Explicit owner filter for privileged callers asking about their own records

        "My leads" means the records assigned to the caller, so only the first
        (assignment) owner column is matched. Row-level scoping for
        unprivileged callers is wider: any owner column grants visibility.
        """
        if context is None or not context.is_privileged(self.privileged_roles):
            return None, []
        if not re.search(OWNERSHIP_PATTERN, lowered):
            return None, []

        spec = self.catalog.table(tables[0])
        if spec.owner_columns:
            return EqualityFilter(column=f"{spec.name}.{spec.owner_columns[0]}", value=context.owner_id), []
        if spec.owned_through:
            via = self.catalog.table(spec.owned_through.via_table)
            if via.owner_columns:
                return EqualityFilter(column=f"{via.name}.{via.owner_columns[0]}", value=context.owner_id), [via.name]
        return None, []

    def _extract_filters(self, text: str, lowered: str, tables: List[str]) -> list:
        filters = []
        filters.extend(self._enum_filters(lowered, tables))
        filters.extend(self._flag_filters(lowered, tables))
        filters.extend(self._measure_filters(lowered, tables))
        filters.extend(self._text_filters(text, lowered, tables))
        return filters

    def _enum_filters(self, lowered: str, tables: List[str]) -> list:
        # Longest values first so "quotation sent" wins over "sent"
        candidates = []
        for table in tables:
            for column in self.catalog.table(table).columns:
                for value in column.enum_values:
                    candidates.append((len(value), table, column.name, value))
        candidates.sort(key=lambda c: -c[0])

        consumed: List[Tuple[int, int]] = []
        matched: Dict[str, Dict[bool, List[str]]] = {}
        claimed_values = set()
        for _, table, column, value in candidates:
            if value.lower() in claimed_values:
                continue
            pattern = r"\b" + re.escape(value.lower()).replace(r"\ ", r"\s+") + r"(?:s|es)?\b"
            for match in re.finditer(pattern, lowered):
                if any(match.start() < end and start < match.end() for start, end in consumed):
                    continue
                consumed.append((match.start(), match.end()))
                claimed_values.add(value.lower())
                negated = _NEGATION_PREFIX.search(lowered[max(0, match.start() - 20):match.start()]) is not None
                matched.setdefault(f"{table}.{column}", {}).setdefault(negated, []).append(value)
                break

        filters = []
        for ref, by_negation in matched.items():
            for negated in (False, True):
                values = by_negation.get(negated)
                if not values:
                    continue
                if len(values) == 1:
                    filters.append(EqualityFilter(column=ref, value=values[0], negate=negated))
                else:
                    filters.append(SetFilter(column=ref, values=tuple(values), negate=negated))
        return filters

    def _flag_filters(self, lowered: str, tables: List[str]) -> list:
        filters = []
        flag_table = next((t for t in tables if self.catalog.has_column(f"{t}.is_active")), None)
        if flag_table:
            if re.search(r"\binactive\b|\bnot active\b", lowered):
                filters.append(EqualityFilter(column=f"{flag_table}.is_active", value=False))
            elif re.search(r"\bactive\b", lowered):
                filters.append(EqualityFilter(column=f"{flag_table}.is_active", value=True))

        engagement_table = next((t for t in tables if self.catalog.has_column(f"{t}.engagement_score")), None)
        if engagement_table:
            ref = f"{engagement_table}.engagement_score"
            if re.search(r"\b(?:low|poor|weak)\s+engage\w*|\bdisengaged\b", lowered):
                filters.append(RangeFilter(column=ref, max=self.low_engagement_threshold, inclusive=False))
            elif re.search(r"\b(?:high|strong|good)\s+engage\w*|\bhighly engaged\b", lowered):
                filters.append(RangeFilter(column=ref, min=self.high_engagement_threshold, inclusive=True))
        return filters

    def _measure_filters(self, lowered: str, tables: List[str]) -> list:
        filters = []
        seen = set()
        for match in _MEASURE_BETWEEN.finditer(lowered):
            ref = self._find_measure(" ".join(match.group("subject").split()[-2:]), tables)
            if ref and ref not in seen:
                seen.add(ref)
                low, high = sorted((float(match.group("low")), float(match.group("high"))))
                filters.append(RangeFilter(column=ref, min=low, max=high, inclusive=True))

        for match in _COMPARISON.finditer(lowered):
            ref = self._find_measure(" ".join(match.group("subject").split()[-2:]), tables)
            if not ref or ref in seen:
                continue
            seen.add(ref)
            number = float(match.group("num"))
            op = match.group("op")
            if op in ("above", "over", "greater than", "more than", "higher than", ">"):
                filters.append(RangeFilter(column=ref, min=number, inclusive=False))
            elif op in ("at least", ">="):
                filters.append(RangeFilter(column=ref, min=number, inclusive=True))
            elif op in ("at most", "<="):
                filters.append(RangeFilter(column=ref, max=number, inclusive=True))
            else:
                filters.append(RangeFilter(column=ref, max=number, inclusive=False))
        return filters

    def _text_filters(self, text: str, lowered: str, tables: List[str]) -> list:
        filters = []
        name_table = next((t for t in tables if self.catalog.table(t).name_column), None)
        if name_table:
            name_ref = f"{name_table}.{self.catalog.table(name_table).name_column}"
            quoted = _QUOTED.search(text)
            named = _NAMED.search(lowered)
            if quoted:
                filters.append(PatternFilter(column=name_ref, pattern=quoted.group(1).strip()))
            elif named:
                # Keep the caller's casing for the pattern
                filters.append(PatternFilter(column=name_ref, pattern=text[named.start(1):named.end(1)].strip()))

        for match in _NULL_CHECK.finditer(lowered):
            column = match.group(2)
            table = next((t for t in tables if self.catalog.has_column(f"{t}.{column}")), None)
            if table:
                filters.append(NullFilter(column=f"{table}.{column}", is_null=match.group(1) != "with"))
                break
        return filters

    def _find_measure(self, text: str, tables: List[str]) -> Optional[str]:
        for pattern, columns in MEASURE_SYNONYMS:
            if not re.search(rf"\b(?:{pattern})", text):
                continue
            for table in tables:
                for column in columns:
                    ref = f"{table}.{column}"
                    if self.catalog.has_column(ref) and self.catalog.column(ref).is_numeric:
                        return ref
        return None

    def _primary_measure(self, tables: List[str]) -> Optional[str]:
        for table in tables:
            spec = self.catalog.table(table)
            if spec.primary_measure:
                return f"{table}.{spec.primary_measure}"
        return None

    def _detect_time_range(self, text: str, lowered: str, tables: List[str]) -> Optional[TimeRange]:
        column = None
        for pattern, ref in TIME_COLUMN_HINTS:
            if ref.split(".")[0] in tables and re.search(pattern, lowered):
                column = ref
                break

        relative = normalize_relative(lowered)
        if relative:
            return TimeRange(relative=relative, column=column)

        absolute = extract_absolute_range(text)
        if absolute:
            start, end, _ = absolute
            return TimeRange(start=start, end=end, column=column)
        return None

    def _detect_limit_and_sort(self, lowered: str, tables: List[str]) -> Tuple[Optional[int], Optional[SortSpec]]:
        timestamp_table = next((t for t in tables if self.catalog.table(t).timestamp_column), None)
        timestamp_ref = f"{timestamp_table}.{self.catalog.table(timestamp_table).timestamp_column}" if timestamp_table else None

        match = _TOP_N.search(lowered)
        if match and int(match.group(1)) > 0:
            measure = self._find_measure(lowered, tables) or self._primary_measure(tables)
            column = measure or timestamp_ref
            return int(match.group(1)), SortSpec(column=column, direction="DESC") if column else None

        match = _LATEST_N.search(lowered)
        if match and int(match.group(2)) > 0:
            direction = "ASC" if match.group(1) == "first" else "DESC"
            return int(match.group(2)), SortSpec(column=timestamp_ref, direction=direction) if timestamp_ref else None
        return None, None

    def _detect_group_by(self, lowered: str, tables: List[str]) -> List[str]:
        for match in _GROUP_BY.finditer(lowered):
            words = match.group(1).split()
            if words[0] in ("me", "the", "a", "an"):
                continue
            for phrase in (" ".join(words), words[0]):
                ref = self._resolve_group_column(phrase, tables)
                if ref:
                    return [ref]
        return []

    def _resolve_group_column(self, phrase: str, tables: List[str]) -> Optional[str]:
        if re.fullmatch(EMPLOYEE_WORDS, phrase):
            for table in tables:
                spec = self.catalog.table(table)
                if spec.owner_columns:
                    return f"{table}.{spec.owner_columns[0]}"
            return None

        normalized = re.sub(r"[\s\-]+", "_", phrase.strip())
        if normalized.endswith("s") and len(normalized) > 3:
            singular = normalized[:-1]
        else:
            singular = normalized
        for table in tables:
            for column in self.catalog.table(table).columns:
                if column.is_numeric and not column.is_key:
                    continue
                for candidate in (normalized, singular):
                    if column.name == candidate or column.name.endswith("_" + candidate) or column.name.startswith(candidate + "_"):
                        return f"{table}.{column.name}"
        return None

    # ------------------------------------------------------------------
    # Scoring and explanation
    # ------------------------------------------------------------------

    @staticmethod
    def _confidence(matched: bool, feature_count: int) -> float:
        if not matched:
            return round(min(MAX_FALLBACK_CONFIDENCE, FALLBACK_CONFIDENCE + 0.05 * feature_count), 2)
        return round(min(MAX_CONFIDENCE, BASE_CONFIDENCE + MATCH_BONUS + FEATURE_BONUS * feature_count), 2)

    @staticmethod
    def _explain(intent: QueryIntent, keyword: Optional[str], matched: bool, notes: List[str]) -> str:
        if not matched:
            parts = ["No CRM entity recognized; defaulting to a contact query"]
        elif keyword:
            parts = [f"Classified as {intent.category.value} (matched '{keyword}')"]
        else:
            parts = [f"Classified as {intent.category.value}"]

        parts.append(f"tables: {', '.join(intent.tables)}")
        if intent.filters:
            parts.append(f"filters: {', '.join(f.describe() for f in intent.filters)}")
        if intent.aggregation_type:
            target = f" of {intent.aggregation_column}" if intent.aggregation_column else ""
            parts.append(f"aggregation: {intent.aggregation_type.value}{target}")
        if intent.group_by:
            parts.append(f"grouped by {', '.join(intent.group_by)}")
        if intent.time_range:
            parts.append(f"time range: {intent.time_range.describe()}")
        if intent.limit:
            parts.append(f"limited to {intent.limit} rows")
        parts.extend(notes)
        return "; ".join(parts) + "."

    def _scope_note(self, lowered: str, context: Optional[UserContext]) -> str:
        if context is None or context.is_privileged(self.privileged_roles):
            return ""
        if re.search(OWNERSHIP_PATTERN, lowered):
            return " Results are limited to records you own."
        return " Results will be scoped to records you own."

