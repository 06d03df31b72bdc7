# app/middleware/validation.py
import re
from typing import Any

from loguru import logger

from ..config.setting import settings
from ..core.exceptions import ValidationError

SUSPICIOUS_PATTERNS = [
    r'<script',
    r'javascript:',
    r'onerror=',
    r'onclick=',
    r';\s*(drop|delete|truncate|alter|update|insert)\s',
    r'--\s*$',
    r'/\*',
]


class ValidationMiddleware:
    """Request validation for question text"""

    @staticmethod
    def validate_question(question: Any) -> bool:
        """Validate question content; raises ValidationError on bad input"""
        if not isinstance(question, str):
            raise ValidationError("Question is required and must be a string")

        if not question.strip():
            raise ValidationError("Question is required and must be a non-empty string")

        if len(question) > settings.MAX_QUERY_LENGTH:
            raise ValidationError(f"Question too long. Maximum {settings.MAX_QUERY_LENGTH} characters allowed.")

        if len(question.strip()) < settings.MIN_QUERY_LENGTH:
            raise ValidationError(f"Question too short. Minimum {settings.MIN_QUERY_LENGTH} characters required.")

        # Injection and XSS markers
        question_lower = question.lower()
        for pattern in SUSPICIOUS_PATTERNS:
            if re.search(pattern, question_lower):
                logger.warning(f"Suspicious pattern detected: {pattern}")
                raise ValidationError("Question contains invalid characters")

        return True

    @staticmethod
    def sanitize_question(question: str) -> str:
        """Sanitize question input"""
        # Remove leading/trailing whitespace
        question = question.strip()

        # Remove null bytes
        question = question.replace('\x00', '')

        # Normalize whitespace
        question = ' '.join(question.split())

        # Limit consecutive special characters
        question = re.sub(r'([^\w\s])\1{3,}', r'\1\1', question)

        return question
