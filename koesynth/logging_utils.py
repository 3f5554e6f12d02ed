from __future__ import annotations

"""Logging setup for the engine: payload summaries, request context and handlers."""

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional
from pathlib import Path
import logging
import logging.config
import json
from datetime import datetime, timezone
import os
import contextvars
import uuid

import numpy as np
import yaml

_MAX_ITEMS = 20
_MAX_TEXT = 200
_HEAD_ITEMS = 5


def _summarize_array(value: np.ndarray) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"shape": list(value.shape), "dtype": str(value.dtype)}
    if value.size and np.issubdtype(value.dtype, np.number):
        summary["range"] = [float(value.min()), float(value.max())]
    return summary


def summarize_payload(value: Any, *, depth: int = 3) -> Any:
    """
    Shrink a payload for DEBUG logs.

    Arrays become shape/dtype/range, long sequences keep their first items,
    long strings are cut and objects with ``to_dict`` are summarized as dicts.
    """
    if isinstance(value, np.ndarray):
        return _summarize_array(value)
    if isinstance(value, np.generic):
        return value.item()
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    if depth <= 0 and isinstance(value, (dict, list, tuple)):
        return f"<{type(value).__name__} len={len(value)}>"
    if isinstance(value, dict):
        summary = {
            str(key): summarize_payload(item, depth=depth - 1)
            for key, item in list(value.items())[:_MAX_ITEMS]
        }
        if len(value) > _MAX_ITEMS:
            summary["..."] = f"{len(value) - _MAX_ITEMS} more keys"
        return summary
    if isinstance(value, (list, tuple)):
        if len(value) <= _MAX_ITEMS:
            return [summarize_payload(item, depth=depth - 1) for item in value]
        return {
            "len": len(value),
            "head": [summarize_payload(item, depth=depth - 1) for item in value[:_HEAD_ITEMS]],
        }
    if isinstance(value, str) and len(value) > _MAX_TEXT:
        return f"{value[:_MAX_TEXT]}...(+{len(value) - _MAX_TEXT} chars)"
    if isinstance(value, (bytes, bytearray)):
        return {"bytes": len(value)}
    if isinstance(value, Path):
        return str(value)
    return value


@dataclass(frozen=True)
class LogContext:
    request_id: str = "-"
    style_id: str = "-"


_context: contextvars.ContextVar[LogContext] = contextvars.ContextVar("koesynth_log_context", default=LogContext())


def set_log_context(*, request_id: Optional[str] = None, style_id: Optional[int] = None) -> None:
    """Update the request/style fields attached to records from this context."""
    changes: Dict[str, str] = {}
    if request_id is not None:
        changes["request_id"] = request_id
    if style_id is not None:
        changes["style_id"] = str(style_id)
    _context.set(replace(_context.get(), **changes))


def clear_log_context() -> None:
    _context.set(LogContext())


@contextmanager
def log_context(*, style_id: Optional[int] = None, request_id: Optional[str] = None) -> Iterator[LogContext]:
    """
    Scope log fields to one operation; a request id is generated when not given.
    The previous context is restored on exit.
    """
    current = LogContext(
        request_id=request_id or uuid.uuid4().hex[:12],
        style_id=str(style_id) if style_id is not None else "-",
    )
    token = _context.set(current)
    try:
        yield current
    finally:
        _context.reset(token)


class LoggingContextFilter(logging.Filter):
    """Copy the current LogContext onto each record."""
    def filter(self, record: logging.LogRecord) -> bool:
        context = _context.get()
        record.request_id = context.request_id
        record.style_id = context.style_id
        return True


TEXT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s:%(lineno)d "
    "request_id=%(request_id)s style_id=%(style_id)s %(message)s"
)

_RECORD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including context fields and ``extra=`` values."""
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.filename}:{record.lineno}",
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "style_id": getattr(record, "style_id", "-"),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES and key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _json_requested() -> bool:
    if os.getenv("LOG_FORMAT", "").lower() == "json":
        return True
    return os.getenv("LOG_JSON", "").lower() in {"1", "true", "yes"}


def is_dev_env() -> bool:
    env = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    return env.lower() in {"dev", "development", "local", "test"}


def build_formatter() -> logging.Formatter:
    if _json_requested():
        return JsonFormatter()
    return logging.Formatter(TEXT_LOG_FORMAT)


def _prepare_handler(handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setFormatter(formatter)
    if not any(isinstance(item, LoggingContextFilter) for item in handler.filters):
        handler.addFilter(LoggingContextFilter())


def _load_logging_config(path: Path) -> Dict[str, Any]:
    """Read a dictConfig mapping from a JSON or YAML file."""
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Invalid logging config at {path}: expected a mapping.")
    return data


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install handlers for the process.

    ``LOG_CONFIG`` may point at a dictConfig file; otherwise a basic stream
    handler is used. ``level`` (or ``KOESYNTH_LOG_LEVEL``) overrides the root
    level. Handlers on the root and ``koesynth`` loggers get the active
    formatter and the context filter.
    """
    config_path = os.getenv("LOG_CONFIG")
    if config_path and Path(config_path).exists():
        logging.config.dictConfig(_load_logging_config(Path(config_path)))
    else:
        logging.basicConfig(level=logging.INFO)
    level = level or os.getenv("KOESYNTH_LOG_LEVEL")
    if level:
        logging.getLogger().setLevel(level.upper())
    formatter = build_formatter()
    handlers: List[logging.Handler] = logging.getLogger().handlers + logging.getLogger("koesynth").handlers
    for handler in handlers:
        _prepare_handler(handler, formatter)


def get_logger(module_name: str) -> logging.Logger:
    """
    Module logger. In dev environments with ``KOESYNTH_LOG_DIR`` set, records
    are also written to ``<dir>/<module_name>.log`` at DEBUG level.
    """
    logger = logging.getLogger(module_name)
    log_dir = os.getenv("KOESYNTH_LOG_DIR")
    if not log_dir or not is_dev_env():
        return logger
    target = Path(os.path.abspath(Path(log_dir) / f"{module_name}.log"))
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == target:
            return logger
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    _prepare_handler(handler, build_formatter())
    logger.addHandler(handler)
    return logger
