"""Logging setup for the key management layer.

Modules log through plain module loggers:

    logger = logging.getLogger(__name__)

setup_logging() installs either a JSON formatter (log aggregation) or a
human-readable one (development). Key material is never logged; field
values whose names look sensitive are masked as a second line of defence.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from keymgmt.config import get_settings

# Sensitive fields to mask in logs
SENSITIVE_FIELDS = {
    "password", "secret", "token", "key", "cek", "credential",
    "plaintext", "private_key", "p2s",
}

# LogRecord attributes that are not user-supplied extra fields
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Mask sensitive values in a dictionary."""
    masked = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(s in key_lower for s in SENSITIVE_FIELDS):
            masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive(value)
        else:
            masked[key] = value
    return masked


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = _extra_fields(record)
        if extra:
            log_entry.update(mask_sensitive(extra))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        extra_str = ""
        extra = _extra_fields(record)
        if extra:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in mask_sensitive(extra).items())

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        message = f"{timestamp} {record.levelname[:4]} [{record.name}] {record.getMessage()}{extra_str}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging(json_output: bool | None = None, level: str | None = None) -> None:
    """Configure logging for the keymgmt package.

    Args:
        json_output: Use JSON format. Defaults to settings.log_json.
        level: Logging level name. Defaults to settings.log_level.
    """
    settings = get_settings()
    json_output = settings.log_json if json_output is None else json_output
    level = level or settings.log_level

    package_logger = logging.getLogger("keymgmt")
    package_logger.setLevel(getattr(logging, level.upper()))

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_output else HumanFormatter())
    package_logger.addHandler(handler)

    # Reduce noise from the AWS SDK
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
