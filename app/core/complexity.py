# app/core/complexity.py
from ..models.intent import IntentCategory, QueryIntent
from ..models.query import ComplexityLevel

CATEGORY_COMPLEXITY = {
    IntentCategory.CONTACT_QUERY: 1,
    IntentCategory.ACCOUNT_QUERY: 1,
    IntentCategory.ACTIVITY_QUERY: 1,
    IntentCategory.LEAD_QUERY: 1,
    IntentCategory.QUOTATION_QUERY: 2,
    IntentCategory.AGGREGATION_QUERY: 2,
    IntentCategory.PERFORMANCE_QUERY: 3,
    IntentCategory.COMPARISON_QUERY: 3,
    IntentCategory.TREND_QUERY: 3,
    IntentCategory.PREDICTION_QUERY: 4,
}


def complexity_score(intent: QueryIntent) -> int:
    score = CATEGORY_COMPLEXITY.get(intent.category, 2)
    score += max(0, len(intent.tables) - 1)
    if intent.aggregation_type:
        score += 1
    if intent.time_range:
        score += 1
    score += max(0, len(intent.filters) - 2)
    return score


def estimate_complexity(intent: QueryIntent) -> ComplexityLevel:
    """Coarse SIMPLE / MODERATE / COMPLEX rating shown by intent-preview"""
    score = complexity_score(intent)
    if score <= 2:
        return ComplexityLevel.SIMPLE
    if score <= 4:
        return ComplexityLevel.MODERATE
    return ComplexityLevel.COMPLEX
