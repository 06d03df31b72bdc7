# tests/test_complexity.py
import pytest

from app.core.complexity import complexity_score, estimate_complexity
from app.models.intent import AggregationType, EqualityFilter, IntentCategory, QueryIntent, TimeRange
from app.models.query import ComplexityLevel


@pytest.mark.parametrize("intent,expected", [
    (
        QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts",), aggregation_type=AggregationType.COUNT),
        ComplexityLevel.SIMPLE,
    ),
    (
        QueryIntent(
            category=IntentCategory.LEAD_QUERY,
            tables=("leads",),
            aggregation_type=AggregationType.COUNT,
            time_range=TimeRange(relative="last month"),
        ),
        ComplexityLevel.MODERATE,
    ),
    (
        QueryIntent(category=IntentCategory.PREDICTION_QUERY, tables=("leads",)),
        ComplexityLevel.MODERATE,
    ),
    (
        QueryIntent(
            category=IntentCategory.QUOTATION_QUERY,
            tables=("quotes_mbcb", "quotes_signages", "quotes_paint"),
            time_range=TimeRange(relative="this quarter"),
        ),
        ComplexityLevel.COMPLEX,
    ),
])
def test_estimate_complexity(intent, expected):
    assert estimate_complexity(intent) == expected


def test_filters_beyond_two_add_weight():
    filters = tuple(
        EqualityFilter(column=f"contacts.{column}", value="x")
        for column in ("name", "designation", "email", "phone")
    )
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts",), filters=filters)

    assert complexity_score(intent) == 3
    assert estimate_complexity(intent) == ComplexityLevel.MODERATE
