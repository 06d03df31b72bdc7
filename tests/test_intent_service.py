# tests/test_intent_service.py
import json
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from openai import OpenAIError

from app.core.exceptions import IntentServiceError
from app.core.llm_helpers.data_normalizers import clamp_confidence, normalize_service_intent
from app.core.llm_helpers.prompt_builders import TOOL_NAME
from app.models.intent import AggregationType, EqualityFilter, IntentCategory
from app.services.intent_service import IntentService, build_intent_service


def _completion(arguments):
    tool_call = SimpleNamespace(function=SimpleNamespace(name=TOOL_NAME, arguments=arguments))
    message = SimpleNamespace(tool_calls=[tool_call] if arguments is not None else None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service(completion=None, error=None):
    client = Mock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value = completion
    return IntentService(client=client, model="gpt-test", timeout=3.0), client


class TestIntentService:
    def test_forces_tool_call_with_timeout(self, catalog, user_context):
        answer = {"category": "CONTACT_QUERY", "tables": ["contacts"]}
        service, client = _service(_completion(json.dumps(answer)))

        assert service.classify("How many contacts do I have?", user_context, catalog) == answer

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["timeout"] == 3.0
        assert kwargs["tool_choice"] == {"type": "function", "function": {"name": TOOL_NAME}}
        assert kwargs["messages"][-1]["content"].endswith("How many contacts do I have?")

    @pytest.mark.parametrize("completion", [
        _completion("{not json"),
        _completion(None),
        _completion(json.dumps(["CONTACT_QUERY"])),
        SimpleNamespace(choices=[]),
    ])
    def test_unusable_answers(self, catalog, completion):
        service, _ = _service(completion)
        with pytest.raises(IntentServiceError):
            service.classify("Show my leads", None, catalog)

    def test_api_error(self, catalog):
        service, _ = _service(error=OpenAIError("boom"))
        with pytest.raises(IntentServiceError, match="boom"):
            service.classify("Show my leads", None, catalog)

    def test_disabled_by_default_in_tests(self):
        assert build_intent_service() is None


class TestNormalizeServiceIntent:
    def test_drops_unknown_tables_and_columns(self, catalog):
        raw = {
            "category": "lead_query",
            "tables": ["leads", "ghosts"],
            "filters": [
                {"column": "leads.status", "kind": "equality", "value": "Lost"},
                {"column": "leads.nickname", "kind": "equality", "value": "x"},
            ],
            "confidence": 1.7,
        }
        intent, confidence, explanation = normalize_service_intent(raw, catalog)

        assert intent.category == IntentCategory.LEAD_QUERY
        assert intent.tables == ("leads",)
        assert intent.filters == (EqualityFilter(column="leads.status", value="Lost"),)
        assert confidence == 1.0
        assert explanation == "Classified as LEAD_QUERY by the intent service"

    def test_average_gets_a_measure(self, catalog):
        intent, _, _ = normalize_service_intent(
            {"category": "ACCOUNT_QUERY", "tables": ["accounts"], "aggregation_type": "average"}, catalog,
        )
        assert intent.aggregation_type == AggregationType.AVG
        assert intent.aggregation_column == "accounts.engagement_score"

    def test_category_table_added(self, catalog):
        intent, _, _ = normalize_service_intent({"category": "CONTACT_QUERY", "tables": []}, catalog)
        assert intent.tables == ("contacts",)

    def test_referenced_table_added(self, catalog):
        raw = {
            "category": "CONTACT_QUERY",
            "tables": ["contacts"],
            "filters": [{"column": "accounts.company_tag", "kind": "equality", "value": "Customer"}],
        }
        intent, _, _ = normalize_service_intent(raw, catalog)
        assert intent.tables == ("contacts", "accounts")

    def test_relative_time_range_normalized(self, catalog):
        raw = {"category": "ACTIVITY_QUERY", "tables": ["activities"], "time_range": {"relative": "past 30 days"}}
        intent, _, _ = normalize_service_intent(raw, catalog)
        assert intent.time_range.relative == "last 30 days"

    def test_bad_limit_dropped(self, catalog):
        intent, _, _ = normalize_service_intent({"category": "LEAD_QUERY", "tables": ["leads"], "limit": 0}, catalog)
        assert intent.limit is None

    @pytest.mark.parametrize("raw", [
        {"category": "WEATHER_QUERY", "tables": ["forecasts"]},
        {"tables": ["contacts"]},
        "CONTACT_QUERY",
    ])
    def test_unusable(self, catalog, raw):
        assert normalize_service_intent(raw, catalog) is None


@pytest.mark.parametrize("value,expected", [
    (0.42, 0.42),
    (-3, 0.0),
    ("0.9", 0.9),
    (None, 0.5),
    (float("nan"), 0.5),
])
def test_clamp_confidence(value, expected):
    assert clamp_confidence(value) == pytest.approx(expected)
