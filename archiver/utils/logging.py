"""
JSON logging for the ingress, the worker and the queue handler.

Every line is one JSON object. The run identity (project_key, repository,
branch) and, for per-archive work, object_key and step sit at the top level
so log queries can filter a single run or a single archive; any other extra
fields are nested under ``context``.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging import LogRecord
from typing import Any, Dict, MutableMapping, Optional


# Fields promoted to the top level of each JSON log line
CONTEXT_FIELDS = ("project_key", "repository", "branch", "object_key", "step")

_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "taskName"}

NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer", "httpx")


class JSONFormatter(logging.Formatter):
    """
    Render a record as one JSON object.

    Keys: timestamp, level, logger, message, the run context fields that are
    set, ``context`` for other extras, ``error`` when an exception is
    attached, and ``source``.
    """

    def format(self, record: LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        entry.update({field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)})

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in CONTEXT_FIELDS
        }
        if extras:
            entry["context"] = extras

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info)),
            }

        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger bound to a run's identity.

    A pipeline run binds project_key/repository/branch once; per-archive
    loggers add object_key on top with ``with_context``.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        # Per-call extras win over bound context
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """Return a child adapter with ``context`` merged into the bound fields."""
        return ContextLoggerAdapter(self.logger, {**self.extra, **context})


def setup_logging(log_level: str = "INFO") -> None:
    """
    Send JSON lines to stdout at ``log_level``.

    Replaces any handlers already installed on the root logger and keeps the
    AWS and HTTP client libraries at WARNING.
    """
    log_level = log_level.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Module logger, optionally pre-bound to context fields.

    Example:
        logger = get_logger(__name__, project_key="PROJ", repository="web-app")
        logger.info("Syncing working copy")
    """
    return ContextLoggerAdapter(logging.getLogger(name), context)


def log_notification(
    logger: logging.LoggerAdapter,
    project_key: str,
    repository: str,
    branch: str,
    event_type: str
) -> None:
    """Log receipt of a notification with its run identity."""
    logger.info(
        f"Notification received: {event_type}",
        extra={
            "project_key": project_key,
            "repository": repository,
            "branch": branch,
            "event_type": event_type,
        }
    )


def log_step_transition(
    logger: logging.LoggerAdapter,
    step: str,
    status: str,
    **context: Any
) -> None:
    """
    Log a pipeline state transition.

    Args:
        logger: Run or archive logger
        step: State name (e.g., 'config_loaded', 'synced', 'uploaded')
        status: 'started', 'completed', 'skipped' or 'failed'
    """
    logger.info(f"Pipeline step {status}: {step}", extra={"step": step, "status": status, **context})


def log_api_call(
    logger: logging.LoggerAdapter,
    service: str,
    operation: str,
    target: str,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Log one call to an external store.

    Args:
        logger: Run or archive logger
        service: 's3', 'secretsmanager', 'sqs' or 'redis'
        operation: Operation name (e.g., 'PutObject')
        target: Object key, secret name or record key the call addressed
        duration_ms: Call duration in milliseconds
        error: Error message when the call failed
    """
    extra: Dict[str, Any] = {"service": service, "operation": operation, "target": target}
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    if error is None:
        logger.info(f"API call: {service}.{operation} {target}", extra=extra)
        return

    extra["error"] = error
    logger.error(f"API call failed: {service}.{operation} {target}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """Log ``error`` with its stack trace and extra context."""
    logger.error(message, extra={"error_type": type(error).__name__, **context}, exc_info=error)
