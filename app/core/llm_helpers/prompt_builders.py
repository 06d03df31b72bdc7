# app/core/llm_helpers/prompt_builders.py
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..schema_catalog import SchemaCatalog
from ...models.intent import AggregationType, IntentCategory
from ...models.user import UserContext

TOOL_NAME = "classify_intent"


def get_intent_tool_schema(catalog: SchemaCatalog) -> List[Dict]:
    """Build the forced tool schema from the catalog's tables"""
    table_names = list(catalog.table_names)
    return [
        {
            "type": "function",
            "function": {
                "name": TOOL_NAME,
                "description": "Classify a CRM question into a structured query intent.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "category": {
                            "type": "string",
                            "enum": [c.value for c in IntentCategory],
                            "description": "Exactly one intent category"
                        },
                        "tables": {
                            "type": "array",
                            "items": {"type": "string", "enum": table_names},
                            "description": "Tables the question touches, most important first"
                        },
                        "filters": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "column": {"type": "string", "description": "table.column"},
                                    "kind": {"type": "string", "enum": ["equality", "range", "set", "pattern", "null"]},
                                    "value": {"type": ["string", "number", "boolean", "null"]},
                                    "values": {"type": "array", "items": {"type": ["string", "number"]}},
                                    "min": {"type": ["number", "string", "null"]},
                                    "max": {"type": ["number", "string", "null"]},
                                    "pattern": {"type": ["string", "null"]},
                                    "negate": {"type": "boolean"},
                                    "is_null": {"type": "boolean"}
                                },
                                "required": ["column", "kind"]
                            }
                        },
                        "aggregation_type": {
                            "type": ["string", "null"],
                            "enum": [a.value for a in AggregationType] + ["average", None]
                        },
                        "aggregation_column": {"type": ["string", "null"], "description": "table.column to aggregate"},
                        "time_range": {
                            "anyOf": [
                                {
                                    "type": "object",
                                    "properties": {
                                        "relative": {"type": ["string", "null"], "description": "e.g. 'last month', 'last 7 days'"},
                                        "start": {"anyOf": [{"type": "string", "format": "date"}, {"type": "null"}]},
                                        "end": {"anyOf": [{"type": "string", "format": "date"}, {"type": "null"}]},
                                        "column": {"type": ["string", "null"]}
                                    }
                                },
                                {"type": "null"}
                            ]
                        },
                        "group_by": {"type": "array", "items": {"type": "string"}},
                        "limit": {"type": ["integer", "null"], "minimum": 1},
                        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                        "explanation": {
                            "type": "string",
                            "description": "Brief 1-sentence summary of the classified intent"
                        }
                    },
                    "required": ["category", "tables", "confidence", "explanation"]
                }
            }
        }
    ]


def build_intent_system_message(catalog: SchemaCatalog, context: Optional[UserContext] = None) -> str:
    """System message describing the CRM schema and classification rules"""
    today = datetime.today().strftime("%Y-%m-%d")
    schema = json.dumps(catalog.describe(), indent=2)
    role = context.role if context else "anonymous"

    return f"""You classify questions asked to a sales CRM into a structured query intent.
Today's date is {today}. The caller's role is {role}.

CATEGORIES:
- CONTACT_QUERY, ACCOUNT_QUERY, ACTIVITY_QUERY, LEAD_QUERY, QUOTATION_QUERY: questions about one kind of record
- AGGREGATION_QUERY: counts or totals across several kinds of record
- PERFORMANCE_QUERY, COMPARISON_QUERY, TREND_QUERY, PREDICTION_QUERY: analytic questions

RULES:
- Use only tables and columns from the schema below; reference columns as table.column
- Every table used by a filter, group_by or aggregation_column must be listed in tables
- Enum filters must use the exact enum values from the schema
- Prefer relative time ranges ("last month", "last 7 days") when the question is relative
- Never invent owner filters for "my" / "mine"; ownership is applied separately
- Keep confidence below 0.5 when the question is vague

SCHEMA:
{schema}"""


def build_intent_messages(question: str, catalog: SchemaCatalog, context: Optional[UserContext] = None) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": build_intent_system_message(catalog, context)},
        {"role": "user", "content": question}
    ]
