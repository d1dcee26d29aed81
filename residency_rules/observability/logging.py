"""Structured logging for calculation runs"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger.json import JsonFormatter


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level and service name"""

    def __init__(self, *args: Any, service_name: str = "residency-rules", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(
    level: str = "WARNING",
    json_output: bool = False,
    service_name: str = "residency-rules",
) -> None:
    """Configure root logging to stderr, as JSON lines or plain text"""
    logger = logging.getLogger()
    logger.setLevel(level.upper())

    # Remove existing handlers
    logger.handlers.clear()

    # stdout is reserved for command output
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        formatter: logging.Formatter = ServiceJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            service_name=service_name,
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_calculation(
    goal_id: str,
    goal_type: str,
    status: str,
    trip_count: int,
    duration_ms: float,
) -> None:
    """Log structured calculation outcome"""
    logging.getLogger("residency_rules.calculation").info(
        "Calculation completed",
        extra={
            "goal_id": goal_id,
            "goal_type": goal_type,
            "status": status,
            "trip_count": trip_count,
            "duration_ms": duration_ms,
        },
    )
