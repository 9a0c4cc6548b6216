"""Process logging: human-readable or JSON, with per-request correlation ids."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

PACKAGE_NAME = "reelvault"

# Hey future me - a ContextVar gives every request task (and every thread) its
# own value. Startup and background jobs never set one, hence the "" default.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

_NOISY_LOGGERS = ("httpx", "httpcore", "alembic", "uvicorn.access")


def get_correlation_id() -> str:
    """Correlation id of the current context ("" outside a request)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id to the current context.

    Args:
        correlation_id: Id to use; a new UUID4 when None

    Returns:
        The id now bound
    """
    value = correlation_id if correlation_id is not None else str(uuid.uuid4())
    correlation_id_var.set(value)
    return value


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the current correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def _is_own_frame(filename: str) -> bool:
    return PACKAGE_NAME in Path(filename).parts and "site-packages" not in filename


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter that prints exception chains root-cause first.

    Only frames from this package are shown, e.g.::

        ERROR   │ reelvault.application.services.migration_manager:88 │ Migration failed
        ╰─► OperationalError: table scenes already exists
            File "database.py", line 201, in run_migrations
              command.upgrade(cfg, "head")
    """

    def formatException(self, ei: Any) -> str:
        exc_value = ei[1]
        if exc_value is None:
            return ""

        chain: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__ or current.__context__

        lines: list[str] = []
        for exc in reversed(chain):
            lines.append(f"╰─► {type(exc).__name__}: {exc}")
            for frame in traceback.extract_tb(exc.__traceback__):
                if not _is_own_frame(frame.filename):
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")
        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """One JSON object per record, with level, logger and source location."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            source=f"{record.module}.{record.funcName}:{record.lineno}",
        )

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    return CompactExceptionFormatter(
        fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
        datefmt="%H:%M:%S",
    )


# Listen future me, call this ONCE per process (the orchestrator does, during
# initialize). It replaces every handler on the root logger. log_out controls the
# stdout handler, log_file adds a file handler; with neither we still keep stdout
# so fatal startup errors are visible.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = PACKAGE_NAME,
    log_file: str | None = None,
    log_out: bool = True,
) -> None:
    """Install the root handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: Emit JSON lines instead of the text format
        app_name: Included in the startup record
        log_file: Optional file to append to
        log_out: Whether to log to stdout
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handlers: list[logging.Handler] = []
    if log_out or not log_file:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    correlation_filter = CorrelationIdFilter()
    formatter = _build_formatter(json_format)
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(correlation_filter)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
            "log_file": log_file or "",
        },
    )
