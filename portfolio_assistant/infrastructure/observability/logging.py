"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from portfolio_assistant.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transition(
    request_id: Optional[str],
    suggestion_id: Optional[int],
    conversation_id: int,
    action_type: str,
    status: str,
    status_persisted: bool,
) -> None:
    """Log one suggestion status change"""
    logging.info(
        "Suggestion transition",
        extra={
            "request_id": request_id,
            "suggestion_id": suggestion_id,
            "conversation_id": conversation_id,
            "step": "suggestion_transition",
            "action_type": action_type,
            "status": status,
            "status_persisted": status_persisted,
        },
    )


def log_execution(
    request_id: Optional[str],
    suggestion_id: Optional[int],
    action_type: str,
    outcome: str,
    duration_ms: float,
    imported: Optional[int] = None,
    duplicates: Optional[int] = None,
    errors: Optional[int] = None,
) -> None:
    """Log structured executor outcome for analysis"""
    logging.info(
        "Execution completed",
        extra={
            "request_id": request_id,
            "suggestion_id": suggestion_id,
            "step": "execution_complete",
            "action_type": action_type,
            "execution_outcome": outcome,
            "imported": imported,
            "duplicates": duplicates,
            "errors": errors,
            "duration_ms": duration_ms,
        },
    )
