"""Structured JSON logging shared by every relay component."""

import json
import logging
import sys
import time
from datetime import UTC, datetime
from typing import Any

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

COMPONENTS = (
    "main",
    "feed_fetcher",
    "feed_parser",
    "registry",
    "preferences",
    "sequencer",
    "relay",
    "transport",
    "scheduler",
    "config",
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON object per line.

    Context passed through ``extra`` (execution id, component, feed URL,
    item index and so on) becomes top-level keys of the entry.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in entry
        )

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ExecutionLogger:
    """Component logger that stamps every record with the session context."""

    def __init__(self, execution_id: str, component: str = "main"):
        """
        Args:
            execution_id: Identifier shared by all loggers of one relay session
            component: One of COMPONENTS, used as the logger name suffix
        """
        self.execution_id = execution_id
        self.component = component
        self.logger = logging.getLogger(f"newsrelay.{component}")
        self.start_time: datetime | None = None
        self._started_at: float | None = None

    def _log(self, level: int, message: str, exc_info: bool = False, **context) -> None:
        context["execution_id"] = self.execution_id
        context["component"] = self.component
        self.logger.log(level, message, exc_info=exc_info, extra=context)

    def debug(self, message: str, **context) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context) -> None:
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, **context) -> None:
        self._log(logging.ERROR, message, **context)

    def exception(self, message: str, **context) -> None:
        """Log at ERROR with the traceback of the exception being handled."""
        self._log(logging.ERROR, message, exc_info=True, **context)

    def log_execution_start(self, **context) -> None:
        self.start_time = datetime.now(UTC)
        self._started_at = time.monotonic()
        self.info(
            f"Starting {self.component} execution",
            execution_start=self.start_time.isoformat(),
            **context,
        )

    def log_execution_end(self, success: bool = True, **context) -> None:
        """Log the end of a session with its wall-clock duration."""
        duration = None
        if self._started_at is not None:
            duration = round(time.monotonic() - self._started_at, 6)

        self.info(
            f"Completed {self.component} execution",
            execution_end=datetime.now(UTC).isoformat(),
            execution_duration_seconds=duration,
            execution_success=success,
            **context,
        )

    def log_feed_parsed(self, feed_url: str, items_count: int, strategy: str) -> None:
        self.info(
            f"Parsed feed with {strategy}: {items_count} items",
            feed_url=feed_url,
            items_count=items_count,
            strategy=strategy,
        )

    def log_item_delivery(
        self, item_title: str, item_index: int, action: str, success: bool = True
    ) -> None:
        """Record one step of an item's delivery (sending, sent, send_failed)."""
        self._log(
            logging.INFO if success else logging.ERROR,
            f"Item {item_index} {action}: {item_title}",
            item_title=item_title,
            item_index=item_index,
            action=action,
            success=success,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self.info("Relay metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Route all relay logging to stderr as JSON lines.

    stdout stays free for outbound device messages in console mode. Calling
    this again replaces the previous handler instead of adding a second one.

    Args:
        log_level: one of LOG_LEVELS (case-insensitive)

    Raises:
        ValueError: If the level is not one of LOG_LEVELS
    """
    if log_level.upper() not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level!r}")
    level = getattr(logging, log_level.upper())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("newsrelay", *(f"newsrelay.{c}" for c in COMPONENTS)):
        component_logger = logging.getLogger(name)
        component_logger.setLevel(level)
        component_logger.propagate = True


def create_execution_logger(
    component: str, execution_id: str | None = None
) -> ExecutionLogger:
    """Create a component logger, generating a session id when none is given."""
    if not execution_id:
        execution_id = f"relay_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    return ExecutionLogger(execution_id, component)
