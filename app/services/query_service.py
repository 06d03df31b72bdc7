# app/services/query_service.py
import time
from typing import Any, Dict, Optional

from loguru import logger

from ..config.logging_config import log_pipeline_result
from ..config.setting import settings
from ..core.complexity import estimate_complexity
from ..core.intent_classifier import IntentClassifier
from ..core.query_analyzer import QueryAnalyzer
from ..core.query_builder import QueryBuilder
from ..core.schema_catalog import SchemaCatalog, build_crm_catalog
from ..models.api import IntentPreviewResponse, QueryExplainResponse
from ..models.query import QueryOptions
from ..models.user import UserContext
from .intent_service import build_intent_service


class QueryExplainService:
    """
    Runs the question -> intent -> plan -> analysis pipeline

    Holds only immutable state, so one instance serves every request.
    Classification and build errors propagate to the route handlers.
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        classifier: IntentClassifier,
        builder: QueryBuilder,
        analyzer: QueryAnalyzer,
    ):
        self.catalog = catalog
        self.classifier = classifier
        self.builder = builder
        self.analyzer = analyzer

    @property
    def intent_mode(self) -> str:
        return "service" if self.classifier.intent_service is not None else "rules"

    def explain(self, question: str, context: UserContext, options: Optional[QueryOptions] = None) -> QueryExplainResponse:
        """
        Explain the SQL that would answer a question, without executing it

        Args:
            question: Sanitized question text
            context: Authenticated caller
            options: Optional limit/offset/ordering overrides

        Returns:
            QueryExplainResponse

        Raises:
            IntentClassificationError: Question could not be classified
            QueryBuildError: Intent could not be turned into SQL
        """
        start_time = time.time()
        classification = self.classifier.classify(question, context)
        plan = self.builder.build_query(classification.intent, context, options)
        analysis = self.analyzer.analyze(plan, classification.intent)

        logger.info(
            f"Explained question for {context.user_id} in {time.time() - start_time:.3f}s: "
            f"{classification.intent.category.value}, ~{analysis.estimated_rows} rows, {len(analysis.warnings)} warning(s)"
        )
        log_pipeline_result(
            question,
            classification.intent.category.value,
            classification.confidence,
            analysis.estimated_rows,
            len(analysis.warnings),
        )

        return QueryExplainResponse(
            sql=plan.sql,
            explanation=plan.explanation,
            affected_tables=list(plan.affected_tables),
            estimated_rows=analysis.estimated_rows,
            warnings=analysis.warnings,
        )

    def preview(self, question: str, context: UserContext) -> IntentPreviewResponse:
        """Classify a question and rate its complexity without building SQL"""
        classification = self.classifier.classify(question, context)
        complexity = estimate_complexity(classification.intent)
        logger.info(
            f"Previewed intent for {context.user_id}: {classification.intent.category.value} "
            f"({classification.source}, confidence={classification.confidence:.2f}, {complexity.value})"
        )
        return IntentPreviewResponse(
            intent=classification.intent,
            confidence=classification.confidence,
            explanation=classification.explanation,
            estimated_complexity=complexity,
        )

    def status(self) -> Dict[str, Any]:
        return {
            "catalog_version": self.catalog.version,
            "tables": len(self.catalog),
            "intent_mode": self.intent_mode,
        }


def build_query_explain_service() -> QueryExplainService:
    """Wire the pipeline from settings; called once at start-up"""
    catalog = build_crm_catalog(settings.TABLE_SIZE_OVERRIDES)
    privileged_roles = settings.privileged_role_set

    classifier = IntentClassifier(
        catalog,
        intent_service=build_intent_service(),
        privileged_roles=privileged_roles,
        fallback_to_rules=settings.INTENT_SERVICE_FALLBACK,
        low_engagement_threshold=settings.LOW_ENGAGEMENT_THRESHOLD,
        high_engagement_threshold=settings.HIGH_ENGAGEMENT_THRESHOLD,
    )
    builder = QueryBuilder(catalog, privileged_roles=privileged_roles)
    analyzer = QueryAnalyzer(
        catalog,
        filter_factor=settings.FILTER_REDUCTION_FACTOR,
        join_multiplier=settings.JOIN_ROW_MULTIPLIER,
        grouped_cap=settings.GROUPED_ROW_CAP,
        default_table_size=settings.DEFAULT_TABLE_SIZE,
    )

    logger.info(f"Query explain pipeline ready (catalog {catalog.version}, {len(catalog)} tables)")
    return QueryExplainService(catalog, classifier, builder, analyzer)
