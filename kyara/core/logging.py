from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

from kyara.core.config import Settings
from kyara.core.context import locale_ctx_var, request_id_ctx_var, user_id_ctx_var


_RESERVED_ATTRS: set[str] = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}

_CONTEXT_ATTRS: tuple[str, ...] = ("request_id", "locale", "user_id")

_DSN_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(postgres(?:ql)?(?:\+asyncpg)?://)([^:/\s]+):([^@/\s]+)@"), r"\1\2:***@"),
    (re.compile(r"(redis(?:\+ssl)?://)(:)?([^@/\s]+)@"), r"\1:***@"),
    (re.compile(r"(?i)(password=)([^\s&]+)"), r"\1***"),
]


def _redact_secrets(value: str) -> str:
    out = value
    for pattern, repl in _DSN_REDACTIONS:
        out = pattern.sub(repl, out)
    return out


def _sanitize_any(value: Any) -> Any:
    if isinstance(value, str):
        return _redact_secrets(value)
    if isinstance(value, dict):
        return {str(k): _sanitize_any(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_any(v) for v in value]
    return value


class SelectionContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        record.locale = locale_ctx_var.get()
        if not hasattr(record, "user_id"):
            record.user_id = user_id_ctx_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = _redact_secrets(record.getMessage())

        base: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": msg,
        }
        for key in _CONTEXT_ATTRS:
            base[key] = getattr(record, key, "-")

        extras: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key in _CONTEXT_ATTRS:
                continue
            extras[key] = _sanitize_any(value)

        if extras:
            base.update(extras)

        if record.exc_info:
            base["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            exc_text = self.formatException(record.exc_info)
            base["exc"] = _redact_secrets(exc_text)

        return json.dumps(base, ensure_ascii=False, separators=(",", ":"), default=str)


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(SelectionContextFilter())

    if settings.log_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] [%(user_id)s] %(message)s"))

    root.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(level)

    # httpx logs every request at INFO; the Jikan client logs its own failures.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
