"""
Logging setup for the compliance service.

Configuration comes from ``logging.yaml`` (dictConfig). Two context variables
travel with every record: the HTTP request id and the target market of the
compliance check being served. Records are scrubbed of provider API keys and
contact details before any handler sees them, and ERROR records are counted in
Prometheus.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.config
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from prometheus_client import Counter

from .core.config import Settings

UNBOUND = "-"

_CONTEXT_VARS: Dict[str, contextvars.ContextVar] = {
    "request_id": contextvars.ContextVar("request_id", default=UNBOUND),
    "target_country": contextvars.ContextVar("target_country", default=UNBOUND),
}

# Attributes every LogRecord carries; anything else was passed via `extra`
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", *_CONTEXT_VARS,
}

LOG_ERRORS = Counter(
    "culturacheck_log_errors_total",
    "Log records emitted at ERROR level or above",
    ["logger", "level"],
)


def _bind(name: str, value: Optional[str]) -> None:
    if value:
        _CONTEXT_VARS[name].set(value)


def bind_request_context(request_id: Optional[str] = None) -> None:
    _bind("request_id", request_id)


def bind_country_context(country: Optional[str]) -> None:
    _bind("target_country", country)


def clear_context() -> None:
    for var in _CONTEXT_VARS.values():
        var.set(UNBOUND)


def current_context() -> Dict[str, str]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


class ContextFilter(logging.Filter):
    """Copy the bound request id and target market onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in current_context().items():
            setattr(record, name, value)
        return True


class PIIRedactingFilter(logging.Filter):
    """
    Mask provider credentials and contact details in log messages.

    Covers OpenAI/Anthropic ``sk-`` keys, Google ``AIza`` keys, bearer tokens,
    email addresses and international phone numbers (business cards and
    signatures in checked content often carry them).
    """

    MASK = "[REDACTED]"
    PATTERNS: Tuple[re.Pattern, ...] = (
        re.compile(r"\bsk-(?:ant-)?[A-Za-z0-9_\-]{10,}"),
        re.compile(r"\bAIza[0-9A-Za-z_\-]{20,}"),
        re.compile(r"\bbearer\s+[A-Za-z0-9._\-]{10,}", re.IGNORECASE),
        re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
        re.compile(r"\+\d{1,3}[\s-]?\d{2,4}[\s-]?\d{3,4}[\s-]?\d{3,4}"),
    )

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self.redact(value) for key, value in record.args.items()}
        return True

    @classmethod
    def redact(cls, value: Any) -> Any:
        if isinstance(value, str):
            for pattern in cls.PATTERNS:
                value = pattern.sub(cls.MASK, value)
            return value
        if isinstance(value, (list, tuple)):
            return type(value)(cls.redact(item) for item in value)
        if isinstance(value, dict):
            return {key: cls.redact(item) for key, item in value.items()}
        return value


class PrometheusErrorHandler(logging.Handler):
    """Count ERROR-and-above records per logger."""

    def emit(self, record: logging.LogRecord) -> None:
        LOG_ERRORS.labels(logger=record.name, level=record.levelname).inc()


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with context and `extra` fields."""

    def format(self, record: logging.LogRecord) -> str:
        return serialize_log_record(record)


def serialize_log_record(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "timestamp": record.created,
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
        "context": current_context(),
    }
    extra = {
        key: value for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }
    if extra:
        payload["extra"] = extra
    if record.exc_info:
        payload["exception"] = logging.Formatter().formatException(record.exc_info)
    return json.dumps(payload, ensure_ascii=False, default=str)


def _load_config(settings: Settings) -> Dict[str, Any]:
    path = settings.log_config_path
    if not path.exists():
        path = Path(__file__).with_name("logging.yaml")
    if not path.exists():
        raise FileNotFoundError(f"Logging configuration not found at {path}")
    with path.open("r", encoding="utf-8") as fp:
        return yaml.safe_load(fp)


def _output_handler(settings: Settings) -> str:
    if settings.environment.lower() == "development" or not settings.enable_json_logs:
        return "console"
    return "json"


def setup_logging(settings: Settings) -> None:
    """
    Apply logging.yaml adjusted for the current environment.

    Development logs human-readable lines to stdout. Other environments log
    JSON, plus a rotating file under ``log_dir`` when file logging is enabled.
    """
    config = _load_config(settings)
    handlers = config.setdefault("handlers", {})
    level = settings.log_level.upper()

    write_file = settings.enable_file_logging and settings.environment.lower() != "development"
    if write_file and "file" in handlers:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        handlers["file"]["filename"] = str(settings.log_dir / "culturacheck.log")
    else:
        # RotatingFileHandler opens its file on construction
        handlers.pop("file", None)

    output = _output_handler(settings)
    app_handlers: List[str] = [output, "error_metrics"]
    if "file" in handlers:
        app_handlers.append("file")

    for name in ("console", "json"):
        if name in handlers:
            handlers[name]["level"] = level

    config["root"] = {"level": level, "handlers": [output]}
    config.setdefault("loggers", {})["culturacheck"] = {
        "handlers": app_handlers,
        "level": level,
        "propagate": False,
    }
    logging.config.dictConfig(config)


__all__ = [
    "bind_request_context",
    "bind_country_context",
    "clear_context",
    "current_context",
    "ContextFilter",
    "PIIRedactingFilter",
    "PrometheusErrorHandler",
    "JsonFormatter",
    "serialize_log_record",
    "setup_logging",
]
