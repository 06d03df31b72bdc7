# app/core/exceptions.py
"""Exception hierarchy for the query intelligence pipeline."""

from typing import Any, Dict, Optional


class QueryPipelineError(Exception):
    """Base exception for every pipeline failure"""


class ValidationError(QueryPipelineError):
    """Malformed or missing request input. Surfaced as HTTP 400."""


class IntentClassificationError(QueryPipelineError):
    """The classifier could not produce even a low-confidence guess"""


class IntentServiceError(IntentClassificationError):
    """The hosted classification service failed, timed out or answered garbage"""


class CatalogError(QueryPipelineError):
    """Unknown table or column looked up in the schema catalog"""


class QueryBuildError(QueryPipelineError):
    """
    The builder found an invariant violation in the intent it was handed.

    Carries the offending intent so the HTTP layer can return it for diagnosis.
    """

    def __init__(self, message: str, intent: Optional[Any] = None):
        super().__init__(message)
        self.intent = intent

    def intent_payload(self) -> Optional[Dict[str, Any]]:
        if self.intent is None:
            return None
        if hasattr(self.intent, "model_dump"):
            return self.intent.model_dump(mode="json", by_alias=True)
        return dict(self.intent)
