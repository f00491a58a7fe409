"""
Structured Logging

JSON records in production, a one-line human format under DEBUG. Every
record carries the request's correlation id; ``extra_data=`` attaches
structured fields (user id, amounts, error codes) to a record.
"""
import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

_NOISY_LIBRARIES = ("httpx", "httpcore", "redis")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def __init__(self, app_name: str | None = None) -> None:
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_name:
            entry["app"] = self.app_name
        cid = correlation_id_var.get()
        if cid:
            entry["correlation_id"] = cid
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra_data"):
            entry["extra"] = record.extra_data
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept ``extra_data=``"""

    def _log_with_extra(self, level: int, msg: str, args: tuple, extra_data: dict[str, Any] | None, **kwargs) -> None:
        if not self.isEnabledFor(level):
            return
        if extra_data:
            kwargs["extra"] = {**kwargs.get("extra", {}), "extra_data": extra_data}
        super()._log(level, msg, args, **kwargs)

    def debug(self, msg: str, *args, extra_data: dict[str, Any] | None = None, **kwargs) -> None:
        self._log_with_extra(logging.DEBUG, msg, args, extra_data, **kwargs)

    def info(self, msg: str, *args, extra_data: dict[str, Any] | None = None, **kwargs) -> None:
        self._log_with_extra(logging.INFO, msg, args, extra_data, **kwargs)

    def warning(self, msg: str, *args, extra_data: dict[str, Any] | None = None, **kwargs) -> None:
        self._log_with_extra(logging.WARNING, msg, args, extra_data, **kwargs)

    def error(self, msg: str, *args, extra_data: dict[str, Any] | None = None, **kwargs) -> None:
        self._log_with_extra(logging.ERROR, msg, args, extra_data, **kwargs)


logging.setLoggerClass(StructuredLogger)


class CorrelationIdFilter(logging.Filter):
    """Exposes the correlation id to the human-readable format"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True


def setup_logging(level: str = "INFO", json_format: bool = True, app_name: str = "billpay-wallet") -> None:
    """Replace the root handlers with a single stdout handler"""
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if json_format:
        handler.setFormatter(JSONFormatter(app_name=app_name))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handler.addFilter(CorrelationIdFilter())
    root_logger.addHandler(handler)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id (a fresh 8-character one if none given) to the current context"""
    cid = correlation_id or uuid.uuid4().hex[:8]
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    cid = correlation_id_var.get()
    return cid or set_correlation_id()


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore


def log_async_operation(operation_name: str):
    """Log the outcome and duration of an async service call.

    AppException subclasses (insufficient funds, invalid input) are expected
    outcomes and go to WARNING with their error code; anything else is an
    ERROR with the traceback.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            from app.core.exceptions import AppException

            logger = get_logger(func.__module__)
            started = time.perf_counter()

            def fields(status: str, **extra: Any) -> dict[str, Any]:
                return {
                    "operation": operation_name,
                    "status": status,
                    "duration_seconds": round(time.perf_counter() - started, 4),
                    **extra,
                }

            try:
                result = await func(*args, **kwargs)
            except AppException as e:
                logger.warning(
                    f"Rejected {operation_name}: {e.message}",
                    extra_data=fields("rejected", error_code=e.error_code.value),
                )
                raise
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}: {e}",
                    extra_data=fields("failed", error=str(e)),
                    exc_info=True,
                )
                raise
            logger.info(f"Completed {operation_name}", extra_data=fields("completed"))
            return result

        return wrapper
    return decorator
