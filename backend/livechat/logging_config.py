# backend/livechat/logging_config.py
import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

_STANDARD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName",
}

_SENSITIVE_KEYS = {"token", "api_key", "apikey", "authorization", "secret", "password"}

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _redact(extras: Dict[str, Any]) -> Dict[str, Any]:
    redacted = {}
    for key, value in extras.items():
        if any(s in key.lower() for s in _SENSITIVE_KEYS) and isinstance(value, str):
            redacted[key] = value[:4] + "***" if len(value) > 8 else "***"
        else:
            redacted[key] = value
    return redacted


class JSONFormatter(logging.Formatter):
    """One JSON object per line; extra= fields land under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "source": f"{record.filename}:{record.lineno} {record.funcName}",
        }
        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "trace": traceback.format_exception(*record.exc_info),
            }
        extras = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extras:
            base["extra"] = _redact(extras)
        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", as_json: bool = False) -> None:
    """Install a single console handler on the root logger.

    Safe to call more than once: an earlier handler installed here is replaced.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_livechat", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if as_json else logging.Formatter(TEXT_FORMAT))
    handler._livechat = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())

    # uvicorn and aiogram are chatty at INFO
    logging.getLogger("aiogram").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
