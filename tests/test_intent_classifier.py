# tests/test_intent_classifier.py
from unittest.mock import Mock

import pytest

from app.core.exceptions import IntentClassificationError, IntentServiceError
from app.core.intent_classifier import IntentClassifier
from app.models.intent import (
    AggregationType, EqualityFilter, IntentCategory, PatternFilter, RangeFilter, SortSpec,
)


def test_count_of_own_contacts(classifier, user_context):
    result = classifier.classify("How many contacts do I have?", user_context)

    assert result.intent.category == IntentCategory.CONTACT_QUERY
    assert result.intent.tables == ("contacts",)
    assert result.intent.aggregation_type == AggregationType.COUNT
    assert result.intent.filters == ()
    assert result.confidence == pytest.approx(0.8)
    assert result.source == "rules"
    assert result.explanation.endswith("Results are limited to records you own.")


def test_low_engagement_accounts_for_admin(classifier, admin_context):
    result = classifier.classify("Show accounts with low engagement", admin_context)

    assert result.intent.category == IntentCategory.ACCOUNT_QUERY
    assert result.intent.tables == ("accounts",)
    assert result.intent.filters == (
        RangeFilter(column="accounts.engagement_score", max=40.0, inclusive=False),
    )
    assert "records you own" not in result.explanation


def test_engagement_thresholds_are_configurable(catalog, admin_context):
    classifier = IntentClassifier(catalog, low_engagement_threshold=25)
    result = classifier.classify("Show accounts with low engagement", admin_context)
    assert result.intent.filters[0].max == 25


@pytest.mark.parametrize("question", ["", "   ", "\n\t"])
def test_empty_question_rejected(classifier, question):
    with pytest.raises(IntentClassificationError):
        classifier.classify(question)


def test_multi_word_status_is_not_an_entity(classifier):
    result = classifier.classify("Show me leads in Quotation Sent status")

    assert result.intent.category == IntentCategory.LEAD_QUERY
    assert result.intent.tables == ("leads",)
    assert result.intent.filters == (EqualityFilter(column="leads.status", value="Quotation Sent"),)


def test_prediction_takes_priority(classifier):
    result = classifier.classify("Predict which leads will convert")
    assert result.intent.category == IntentCategory.PREDICTION_QUERY
    assert result.intent.tables == ("leads",)


def test_comparison_over_named_quote_products(classifier):
    result = classifier.classify("Compare quotation values for mbcb and paint")
    assert result.intent.category == IntentCategory.COMPARISON_QUERY
    assert result.intent.tables == ("quotes_mbcb", "quotes_paint")


def test_quotation_total_this_quarter(classifier):
    result = classifier.classify("Total value of quotations this quarter")
    intent = result.intent

    assert intent.category == IntentCategory.QUOTATION_QUERY
    assert intent.tables == ("quotes_mbcb", "quotes_signages", "quotes_paint")
    assert intent.aggregation_type == AggregationType.SUM
    assert intent.aggregation_column == "quotes_mbcb.final_total_cost"
    assert intent.time_range.relative == "this quarter"


def test_several_entities_with_count_is_aggregation(classifier):
    result = classifier.classify("How many leads and contacts were added?")
    assert result.intent.category == IntentCategory.AGGREGATION_QUERY
    assert result.intent.tables == ("leads", "contacts")


def test_named_filter_keeps_caller_casing(classifier):
    result = classifier.classify("List contacts named Acme")
    assert result.intent.filters == (PatternFilter(column="contacts.name", pattern="Acme"),)


def test_quoted_name_filter(classifier):
    result = classifier.classify('Find accounts called "Tata Steel"')
    assert result.intent.filters == (PatternFilter(column="accounts.account_name", pattern="Tata Steel"),)


def test_relative_time_range(classifier):
    result = classifier.classify("Show activities from last 7 days")
    assert result.intent.category == IntentCategory.ACTIVITY_QUERY
    assert result.intent.time_range.relative == "last 7 days"
    assert result.intent.limit is None


def test_absolute_time_range(classifier):
    result = classifier.classify("Show leads created between 2024-01-01 and 2024-03-31")
    time_range = result.intent.time_range
    assert time_range.start.isoformat() == "2024-01-01"
    assert time_range.end.isoformat() == "2024-03-31"


def test_top_n_sorts_by_measure(classifier):
    result = classifier.classify("Top 5 leads by score")
    assert result.intent.limit == 5
    assert result.intent.sort == SortSpec(column="leads.score", direction="DESC")
    assert result.intent.group_by == ()


def test_group_by_status(classifier):
    result = classifier.classify("How many leads per status?")
    assert result.intent.aggregation_type == AggregationType.COUNT
    assert result.intent.group_by == ("leads.status",)


def test_privileged_ownership_phrase_adds_owner_filter(classifier, admin_context):
    result = classifier.classify("Show my contacts", admin_context)
    assert result.intent.filters == (EqualityFilter(column="contacts.created_by", value="emp-1"),)


def test_privileged_ownership_phrase_matches_assignment_column(classifier, admin_context):
    result = classifier.classify("Show my leads", admin_context)
    assert result.intent.tables == ("leads",)
    assert result.intent.filters == (EqualityFilter(column="leads.assigned_employee", value="emp-1"),)


def test_privileged_account_ownership_goes_through_sub_accounts(classifier, admin_context):
    result = classifier.classify("Show my accounts", admin_context)
    assert result.intent.tables == ("accounts", "sub_accounts")
    assert result.intent.filters == (EqualityFilter(column="sub_accounts.assigned_employee", value="emp-1"),)


def test_unprivileged_ownership_phrase_adds_no_filter(classifier, user_context):
    result = classifier.classify("Show my contacts", user_context)
    assert result.intent.filters == ()
    assert result.explanation.endswith("Results are limited to records you own.")


def test_unrecognized_question_falls_back_with_low_confidence(classifier):
    result = classifier.classify("hello there")
    assert result.intent.category == IntentCategory.CONTACT_QUERY
    assert result.confidence < 0.5
    assert result.explanation.startswith("No CRM entity recognized")


def test_employee_only_question_is_performance(classifier):
    result = classifier.classify("Which employee logged the most this month?")
    assert result.intent.category == IntentCategory.PERFORMANCE_QUERY
    assert "users" in result.intent.tables


def test_intent_always_satisfies_table_invariant(classifier, catalog):
    questions = [
        "How many contacts do I have?",
        "Average engagement of accounts in Pan India",
        "Show overdue tasks due this week",
        "Compare leads versus contacts",
        "Show quotes with final cost above 50000",
        "Which sub-accounts have no activities yesterday?",
    ]
    for question in questions:
        intent = classifier.classify(question).intent
        assert intent.invariant_violations() == []
        intent.validated(catalog)


class TestIntentServiceIntegration:
    def _classifier(self, catalog, service, fallback=True):
        return IntentClassifier(catalog, intent_service=service, fallback_to_rules=fallback)

    def test_service_answer_preferred(self, catalog):
        service = Mock()
        service.classify.return_value = {
            "category": "LEAD_QUERY",
            "tables": ["leads"],
            "filters": [{"column": "leads.status", "kind": "equality", "value": "Lost"}],
            "confidence": 0.9,
            "explanation": "Lost leads",
        }
        result = self._classifier(catalog, service).classify("which leads did we lose")

        assert result.source == "service"
        assert result.confidence == pytest.approx(0.9)
        assert result.intent.filters == (EqualityFilter(column="leads.status", value="Lost"),)
        assert result.explanation == "Lost leads"
        service.classify.assert_called_once()

    def test_service_failure_falls_back_to_rules(self, catalog):
        service = Mock()
        service.classify.side_effect = IntentServiceError("timeout")
        result = self._classifier(catalog, service).classify("How many contacts do I have?")

        assert result.source == "rules"
        assert result.intent.category == IntentCategory.CONTACT_QUERY

    def test_service_failure_without_fallback_raises(self, catalog):
        service = Mock()
        service.classify.side_effect = IntentServiceError("timeout")
        with pytest.raises(IntentClassificationError):
            self._classifier(catalog, service, fallback=False).classify("How many contacts do I have?")

    def test_unusable_service_answer_uses_rules(self, catalog):
        service = Mock()
        service.classify.return_value = {"category": "WEATHER_QUERY", "tables": ["forecasts"]}
        result = self._classifier(catalog, service).classify("Show accounts with low engagement")

        assert result.source == "rules"
        assert result.intent.category == IntentCategory.ACCOUNT_QUERY
