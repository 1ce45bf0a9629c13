"""Structured JSON logging with workflow run context."""
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from flowforge.config import get_settings


RUN_CONTEXT_FIELDS = ("workflow_id", "run_id", "block_name")


class RunContextFilter(logging.Filter):
    """Add run context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default run context fields if not present."""
        for name in RUN_CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        # Ensure timestamp is present
        if "timestamp" not in log_record:
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Only keep run context that was actually set
        for name in RUN_CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                log_record.pop(name, None)
            else:
                log_record[name] = value


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the application (JSON or plain text)."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)

    if settings.log_json:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def run_context(
    workflow_id: Any = None,
    run_id: str | None = None,
    block_name: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with run context for logging.

    Args:
        workflow_id: Workflow being executed
        run_id: Identifier of the current run
        block_name: Block being visited
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if workflow_id is not None:
        extra["workflow_id"] = workflow_id
    if run_id:
        extra["run_id"] = run_id
    if block_name:
        extra["block_name"] = block_name
    return extra
