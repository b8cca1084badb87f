"""
Logging setup for the reminder service.

Console output is plain text; the optional rotating file gets one JSON object
per line so sweep summaries can be grepped by ``run_id`` or ``event_type``.
"""
import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Loggers that get the service handlers; anything else propagates to root.
_HANDLED_LOGGERS = ("quifin", "uvicorn", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the structured context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_data", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """
    Thin wrapper over ``logging.Logger`` taking keyword context.

    ``logger.warning("Reminder send failed", run_id=..., status_code=503)``
    attaches the keywords (``None`` values dropped) as ``extra_data``;
    ``exc_info=True`` attaches the active traceback.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, exc_info: bool = False, **context: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        extra_data = {k: v for k, v in context.items() if v is not None}
        self.logger.log(level, message, exc_info=exc_info, extra={"extra_data": extra_data})

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._log(logging.ERROR, message, **context)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True
) -> None:
    """
    Configure service logging.

    Args:
        log_level: level for the service loggers and root
        log_file: rotating JSON log file, created with its parent directory
        enable_console: also log plain text to stdout
    """
    handlers: Dict[str, Dict[str, Any]] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "stream": sys.stdout,
            "formatter": "standard",
        }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
        }

    names = list(handlers)
    levels = {"quifin": log_level, "uvicorn": "INFO", "sqlalchemy.engine": "WARNING"}
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            name: {"level": levels[name], "handlers": names, "propagate": False}
            for name in _HANDLED_LOGGERS
        },
        "root": {"level": log_level, "handlers": names},
    })


def get_logger(name: str) -> StructuredLogger:
    """Structured logger under the ``quifin`` hierarchy (``__name__`` is fine)."""
    if name == "quifin" or name.startswith("quifin."):
        return StructuredLogger(name)
    return StructuredLogger(f"quifin.{name}")


def log_business_event(
    event_type: str,
    details: Dict[str, Any],
    run_id: Optional[str] = None,
    request_id: Optional[str] = None
) -> None:
    """Audit record, e.g. ``reminder_sweep_completed`` or ``test_notification_sent``."""
    get_logger("audit").info(
        f"Business event: {event_type}",
        event_type=event_type,
        run_id=run_id,
        request_id=request_id,
        **details
    )


def log_performance(
    operation: str,
    duration_ms: float,
    additional_data: Optional[Dict[str, Any]] = None
) -> None:
    get_logger("performance").info(
        f"Performance: {operation}",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **(additional_data or {})
    )
