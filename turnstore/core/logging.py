"""Structured logging for storage operations.

Every storage call runs inside ``operation_scope()``, which binds a short id
in a ContextVar so all lines of one call can be grouped. Records are rendered
by ``JsonFormatter`` with the storage fields (operation, blob name, status,
error kind, cooldown) at fixed top-level keys. ``RedactionFilter`` scrubs the
access token from structured extras and from free text such as transport
error messages, which may echo request headers.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from turnstore.core.config import LogSettings, settings

PACKAGE_LOGGER = "turnstore"
REDACTED = "[REDACTED]"

# Keys the storage adapters pass through ``extra=``, emitted in this order
STORAGE_FIELDS: tuple[str, ...] = (
    "operation",
    "blob_name",
    "status_code",
    "error_kind",
    "error_summary",
    "remaining_s",
)

# Keys whose values never reach a log line; blob payloads included
REDACTED_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "access_token",
        "storage_access_token",
        "token",
        "data",
        "payload",
        "content",
    }
)

_BEARER_PATTERN = re.compile(r"(bearer\s+)[^\s,;\"']+", re.IGNORECASE)

# Attributes every LogRecord carries; anything else came from ``extra=``
_RECORD_ATTRS = frozenset(vars(LogRecord("", logging.NOTSET, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

_operation_id_var: ContextVar[str | None] = ContextVar("operation_id", default=None)


def get_operation_id() -> str | None:
    """Return the id of the storage operation in progress, if any."""

    return _operation_id_var.get()


@contextmanager
def operation_scope(operation_id: str | None = None) -> Iterator[str]:
    """Bind an operation id for the duration of one storage call.

    Every log line emitted inside the block carries the same id. The previous
    value is restored on exit, so scopes can nest.

    Args:
        operation_id: Id to bind; a short random id is generated when omitted.

    Yields:
        The bound operation id.
    """

    bound = operation_id or uuid.uuid4().hex[:12]
    token = _operation_id_var.set(bound)
    try:
        yield bound
    finally:
        _operation_id_var.reset(token)


def _extras(record: LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _scrub(value: Any, keys: frozenset[str]) -> Any:
    """Redact credential keys in mappings and bearer tokens in strings."""

    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in keys else _scrub(v, keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v, keys) for v in value)
    if isinstance(value, str):
        return _BEARER_PATTERN.sub(rf"\g<1>{REDACTED}", value)
    return value


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class OperationIdFilter(logging.Filter):
    """Attach the bound operation id to records that lack one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "operation_id", None) is None:
            operation_id = get_operation_id()
            if operation_id:
                record.operation_id = operation_id
        return True


class RedactionFilter(logging.Filter):
    """Scrub credentials from a record's extras and its rendered message."""

    def __init__(self, keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.keys = frozenset(k.lower() for k in (keys or REDACTED_KEYS))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extras(record).items():
            setattr(record, key, REDACTED if key.lower() in self.keys else _scrub(value, self.keys))

        message = record.getMessage()
        scrubbed = _scrub(message, self.keys)
        if scrubbed != message:
            record.msg, record.args = scrubbed, ()
        return True


class JsonFormatter(logging.Formatter):
    """Render one record per line as JSON, storage fields first.

    The formatter does not redact; attach ``RedactionFilter`` to the handler.
    """

    def __init__(self, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = _extras(record)
        operation_id = extras.pop("operation_id", None)
        if operation_id:
            payload["operation_id"] = operation_id
        for field in STORAGE_FIELDS:
            if field in extras:
                payload[field] = _plain(extras.pop(field))
        payload.update(extras)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/turnstore.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> logging.Logger:
    """Install one redacting handler on the ``turnstore`` logger.

    The host application's root logger is left alone; package records stop
    propagating so they are not written twice.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.

    Returns:
        The configured package logger.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(OperationIdFilter())
    handler.addFilter(RedactionFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))
    package_logger.propagate = False

    # httpx logs every request at INFO, token-free but noisy
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return package_logger
