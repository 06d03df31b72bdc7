# app/services/intent_service.py
import json
import time
from typing import Any, Dict, Optional

from loguru import logger
from openai import OpenAI, OpenAIError

from ..config.setting import settings
from ..core.exceptions import IntentServiceError
from ..core.llm_helpers.prompt_builders import TOOL_NAME, build_intent_messages, get_intent_tool_schema
from ..core.schema_catalog import SchemaCatalog
from ..models.user import UserContext


class IntentService:
    """
    Hosted intent classification through OpenAI tool calling

    Treated as untrusted and possibly slow: every call is bounded by a
    timeout and never retried. Any failure surfaces as IntentServiceError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or settings.INTENT_SERVICE_TIMEOUT
        self.client = client or OpenAI(
            api_key=api_key or settings.OPENAI_API_KEY,
            timeout=self.timeout,
            max_retries=0,
        )

    def classify(self, question: str, context: Optional[UserContext], catalog: SchemaCatalog) -> Dict[str, Any]:
        """
        Ask the hosted model for a structured intent

        Args:
            question: Normalized question text
            context: Optional caller context (role is included in the prompt)
            catalog: Catalog used to build the tool schema

        Returns:
            Raw tool-call arguments, normalized later against the catalog

        Raises:
            IntentServiceError: API error, timeout or malformed answer
        """
        messages = build_intent_messages(question, catalog, context)
        start_time = time.time()
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=get_intent_tool_schema(catalog),
                tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except OpenAIError as e:
            error_type = type(e).__name__
            logger.error(f"Intent service API error ({error_type}): {e}")
            raise IntentServiceError(f"{error_type}: {e}") from e

        execution_time = time.time() - start_time
        try:
            tool_calls = completion.choices[0].message.tool_calls
            result = json.loads(tool_calls[0].function.arguments)
        except (AttributeError, IndexError, TypeError, json.JSONDecodeError) as e:
            logger.error(f"Intent service returned an unusable answer: {e}")
            raise IntentServiceError("Malformed response from intent service") from e

        if not isinstance(result, dict):
            raise IntentServiceError("Intent service answer is not an object")

        logger.info(f"Intent service answered in {execution_time:.2f}s: {result.get('category')}")
        return result


def build_intent_service() -> Optional[IntentService]:
    """Intent service when enabled in configuration, otherwise None"""
    if not settings.INTENT_SERVICE_ENABLED:
        logger.info("Hosted intent service disabled, using rule-based classification")
        return None
    logger.info(f"Hosted intent service enabled (model={settings.OPENAI_MODEL}, timeout={settings.INTENT_SERVICE_TIMEOUT}s)")
    return IntentService()
