"""Logging configuration.

Rotating file logs with optional JSON output. Contextvars (request id, user id,
organisation id, client ip) are attached to every record so HTTP requests and
socket sessions can be correlated with the deliveries they trigger.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
org_id_ctx: ContextVar[Optional[str]] = ContextVar("org_id", default=None)
ip_ctx: ContextVar[Optional[str]] = ContextVar("ip_address", default=None)

_CONTEXT_VARS = {
    "request_id": request_id_ctx,
    "user_id": user_id_ctx,
    "org_id": org_id_ctx,
    "ip_address": ip_ctx,
}

# Extra record attributes copied into JSON output when present.
_EXTRA_FIELDS = (
    "user_id",
    "org_id",
    "request_id",
    "ip_address",
    "endpoint",
    "method",
    "status_code",
    "channel",
    "client_key",
    "notification_type",
)

_TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Emit logs as JSON for aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if hasattr(record, "duration"):
            log_data["duration_ms"] = record.duration

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Add ANSI colors to console output for local readability."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        result = super().format(record)
        record.levelname = levelname
        return result


class ContextEnricher(logging.Filter):
    """Inject bound contextvars into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        for name, var in _CONTEXT_VARS.items():
            value = var.get()
            if value and not hasattr(record, name):
                setattr(record, name, value)
        return True


def bind_request_context(
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    org_id: Optional[str] = None,
    ip_address: Optional[str] = None,
):
    """Bind request context into contextvars; returns tokens for reset."""
    values = {
        "request_id": request_id,
        "user_id": user_id,
        "org_id": org_id,
        "ip_address": ip_address,
    }
    tokens = []
    for name, value in values.items():
        if value is not None:
            tokens.append((name, _CONTEXT_VARS[name].set(value)))
    return tokens


def reset_request_context(tokens):
    """Reset bound contextvars using tokens returned by bind_request_context."""
    for key, token in reversed(tokens):
        var = _CONTEXT_VARS.get(key)
        if var is not None:
            var.reset(token)


def _rotating_handler(
    path: Path, level: int, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    app_name: str = "care_notifications",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    use_json: bool = False,
    use_colors: bool = True,
) -> None:
    """Configure root logging.

    Args:
        log_level: Minimum logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory to store log files; if None, logs only to console.
        app_name: Application name used in log filenames.
        max_bytes: Max size per log file before rotation.
        backup_count: Number of rotated files to keep.
        use_json: If True, use JSON for file handlers.
        use_colors: If True, add ANSI colors to console output.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    def _reset_handlers(logger: logging.Logger) -> None:
        """Close and remove any existing handlers to avoid descriptor leaks."""
        for handler in list(logger.handlers):
            try:
                handler.flush()
            finally:
                handler.close()
                logger.removeHandler(handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _reset_handlers(root_logger)
    context_filter = ContextEnricher()
    root_logger.addFilter(context_filter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    formatter_cls = ColoredFormatter if use_colors else logging.Formatter
    console_handler.setFormatter(formatter_cls(_TEXT_FORMAT, datefmt=_DATE_FORMAT))
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        general_handler = _rotating_handler(
            log_path / f"{app_name}.log", logging.DEBUG, max_bytes, backup_count
        )
        error_handler = _rotating_handler(
            log_path / f"{app_name}_error.log", logging.ERROR, max_bytes, backup_count
        )
        for handler in (general_handler, error_handler):
            if use_json:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(
                    logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT)
                )
            handler.addFilter(context_filter)
            root_logger.addHandler(handler)

        access_handler = _rotating_handler(
            log_path / f"{app_name}_access.log", logging.INFO, max_bytes, backup_count
        )
        if use_json:
            access_handler.setFormatter(JSONFormatter())
        else:
            access_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s | %(method)s %(endpoint)s | Status: %(status_code)s"
                    " | Duration: %(duration)sms | IP: %(ip_address)s",
                    datefmt=_DATE_FORMAT,
                )
            )

        access_logger = logging.getLogger("access")
        _reset_handlers(access_logger)
        access_logger.addHandler(access_handler)
        access_logger.setLevel(logging.INFO)
        access_logger.propagate = False
        access_logger.addFilter(context_filter)

    # Firebase and its transport are chatty at INFO.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)

    logging.info(
        "Logging configured. Level: %s, Directory: %s",
        log_level,
        log_dir or "console only",
    )


def log_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_ms: float,
    ip_address: str,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> None:
    """Log an HTTP request with structured data on the `access` logger."""
    logger = logging.getLogger("access")
    extra = {
        "method": method,
        "endpoint": endpoint,
        "status_code": status_code,
        "duration": f"{duration_ms:.2f}",
        "ip_address": ip_address,
    }
    if user_id:
        extra["user_id"] = user_id
    if request_id:
        extra["request_id"] = request_id

    logger.info(
        f"{method} {endpoint} - {status_code} - {duration_ms:.2f}ms", extra=extra
    )


__all__ = [
    "JSONFormatter",
    "ColoredFormatter",
    "ContextEnricher",
    "bind_request_context",
    "reset_request_context",
    "setup_logging",
    "log_request",
    "request_id_ctx",
    "user_id_ctx",
    "org_id_ctx",
    "ip_ctx",
]
