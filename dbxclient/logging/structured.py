"""Structured JSON logging for the client core.

Logs go to stdout as JSON lines. Optional file output via
DATABRICKS_LOG_FILE. Each `send` gets a short request id so the
resolution, retry and debug lines of one call can be correlated.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from dbxclient.config.settings import ClientConfig, get_config

LOGGER_NAME = "dbxclient"

# Headers that carry credentials
SENSITIVE_HEADERS = frozenset({
    "authorization",
    "x-databricks-azure-sp-management-token",
    "x-databricks-gcp-sa-access-token",
})

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
        }
        if hasattr(record, "audit_data"):
            log_entry.update(record.audit_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(config: ClientConfig | None = None) -> None:
    """Configure the package logger with JSON output."""
    config = config or get_config()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False


def get_logger(name: str = "") -> logging.Logger:
    """Child of the package logger, e.g. get_logger("auth") -> dbxclient.auth."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def redact_headers(headers, reveal: bool = False) -> dict[str, str]:
    """Copy of headers safe to log. Credential headers are masked unless reveal is set."""
    redacted = {}
    for key, value in headers.items():
        if not reveal and key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "***REDACTED***"
        else:
            redacted[key] = value
    return redacted


def truncate_body(body: bytes | str, limit: int) -> str:
    if isinstance(body, bytes):
        body = body.decode(errors="replace")
    if len(body) <= limit:
        return body
    return f"{body[:limit]}... ({len(body) - limit} more bytes)"


class RequestTimer:
    """Context manager to measure request latency."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
