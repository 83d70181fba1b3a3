"""structlog setup for mnemograph.

JSON output for production, console output for development. Two
processors keep graph payloads log-safe: embedding vectors are collapsed
to a short summary, and credentials or contact details found in keys,
connection URIs or observation text are redacted.
"""

import re
import sys
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "credentials",
    "private_key",
    "access_token",
    "bearer",
})

URI_CREDENTIALS_PATTERN = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s:]+:[^/@\s]+@", re.I)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-\(\)]{9,}\d")

# Float lists at least this long are treated as embedding vectors
VECTOR_SUMMARY_THRESHOLD = 8

LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _is_vector(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) >= VECTOR_SUMMARY_THRESHOLD
        and all(isinstance(x, float) for x in value)
    )


class VectorSummarizer:
    """Replace embedding vectors in log events with `<vector dim=N>`."""

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._summarize(event_dict))

    def _summarize(self, value: Any) -> Any:
        if _is_vector(value):
            return f"<vector dim={len(value)}>"
        if isinstance(value, dict):
            return {key: self._summarize(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._summarize(item) for item in value]
        return value


class PIIRedactor:
    """Redact secrets and PII from log events.

    Values under sensitive keys are replaced wholesale; every other string
    is pattern-scrubbed, since observation text is free-form user content.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact(event_dict))

    def _redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: "[REDACTED]" if str(key).lower() in SENSITIVE_KEYS else self._redact(item)
                for key, item in value.items()
            }
        if isinstance(value, list | tuple):
            return [self._redact(item) for item in value]
        if isinstance(value, str):
            return self.redact_text(value)
        return value

    @staticmethod
    def redact_text(text: str) -> str:
        text = URI_CREDENTIALS_PATTERN.sub(r"\g<scheme>[REDACTED]@", text)
        text = EMAIL_PATTERN.sub("[EMAIL]", text)
        return PHONE_PATTERN.sub("[PHONE]", text)


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for production, "console" for development
        redact_pii: Whether to scrub secrets and PII from log events
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        VectorSummarizer(),
    ]
    if redact_pii:
        processors.append(PIIRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(LEVELS.get(level.upper(), 20)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to `name` (typically the module's __name__)."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
