"""
Logging configuration for the query intelligence service
"""

from loguru import logger
import sys
from pathlib import Path
from typing import Optional

from .setting import settings


def setup_logging():
    """
    Configure loguru for file and console logging
    """
    # Remove default handler
    logger.remove()

    # Console handler with color formatting
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL
    )

    if not settings.LOG_TO_FILE:
        logger.info("Logging system initialized (console only)")
        return logger

    # Create logs directory if it doesn't exist
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(exist_ok=True)

    # File handler - Daily rotation
    logger.add(
        str(log_dir / "query_api_{time:YYYY-MM-DD}.log"),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation="1 day",
        retention="30 days",
        level="DEBUG",
        compression="zip"  # Compress old logs to save space
    )

    # Error-specific log file
    logger.add(
        str(log_dir / "errors_{time:YYYY-MM-DD}.log"),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="ERROR",
        rotation="1 day",
        retention="60 days",  # Keep errors longer
        compression="zip"
    )

    # Pipeline logs (classifier, builder, analyzer)
    logger.add(
        str(log_dir / "query_pipeline_{time:YYYY-MM-DD}.log"),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        filter=lambda record: record["name"].startswith("app.core") or "intent_service" in record["name"],
        rotation="1 day",
        retention="14 days",
        level="DEBUG"
    )

    logger.info("Logging system initialized successfully")
    return logger


def log_pipeline_result(question: str, category: str, confidence: float, estimated_rows: int, warning_count: int):
    """Log one explained question for later analysis"""
    logger.info(
        f"QUERY_EXPLAIN | Question: '{question[:50]}' | Category: {category} | "
        f"Confidence: {confidence:.2f} | Rows: {estimated_rows} | Warnings: {warning_count}"
    )


def log_user_interaction(user_id: str, question: str, endpoint: str, confidence: Optional[float] = None):
    """Log user interactions for analytics"""
    message = f"USER_INTERACTION | User: {user_id} | Question: '{question[:30]}...' | Endpoint: {endpoint}"
    if confidence is not None:
        message += f" | Confidence: {confidence:.2f}"
    logger.info(message)
