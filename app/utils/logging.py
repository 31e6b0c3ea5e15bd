"""
Logging configuration with secret redaction.

Model API keys and bearer tokens can end up in exception text, so every
record passes through the redacting filter before it is emitted.
"""

import re
import logging
import json
from typing import Any, Dict
from datetime import datetime

from app.utils.config import SECRET_PATTERNS

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message'
}

NOISY_LOGGERS = ["aiosqlite", "httpx", "httpcore", "websockets", "pyppeteer", "openai"]


class RedactingFilter(logging.Filter):
    """Masks credentials in log messages and string arguments."""

    KEY_PATTERNS = [
        re.compile(pattern, re.IGNORECASE) for pattern in SECRET_PATTERNS
    ]

    VALUE_PATTERNS = [
        re.compile(r'Bearer\s+[A-Za-z0-9\-_\.]+', re.IGNORECASE),
        re.compile(r'sk-[A-Za-z0-9\-_]+'),  # OpenAI-style keys
        re.compile(r'eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+'),  # JWTs
    ]

    REDACTED = "[REDACTED]"

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self.redact(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    self.redact(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True

    def redact(self, text: str) -> str:
        """Return text with token-shaped values and secret key/value pairs masked."""
        result = text

        for pattern in self.VALUE_PATTERNS:
            result = pattern.sub(self.REDACTED, result)

        for pattern in self.KEY_PATTERNS:
            result = re.sub(
                rf'({pattern.pattern})\s*[=:]\s*["\']?([^"\'\s,}}]+)["\']?',
                rf'\1={self.REDACTED}',
                result,
                flags=re.IGNORECASE
            )

        return result


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self):
        super().__init__()
        self.redacting_filter = RedactingFilter()

    def format(self, record: logging.LogRecord) -> str:
        self.redacting_filter.filter(record)

        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging():
    """Configure application logging."""
    from app.utils.config import settings

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    handler.addFilter(RedactingFilter())

    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def redact_dict(data: Dict[str, Any], keys_to_redact: list = None) -> Dict[str, Any]:
    """Mask secret-looking keys in a (possibly nested) dictionary."""
    if keys_to_redact is None:
        keys_to_redact = SECRET_PATTERNS

    redacted = {}
    for key, value in data.items():
        if any(re.search(pattern, str(key), re.IGNORECASE) for pattern in keys_to_redact):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_dict(value, keys_to_redact)
        elif isinstance(value, list):
            redacted[key] = [
                redact_dict(item, keys_to_redact) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value

    return redacted
