"""
Logging setup shared by the API process and the maintenance scripts.

Authorization codes, tokens and client credentials must never reach the log
output. ``RedactSecretsFilter`` masks them in the rendered message; it is
attached to the stdout handler and to the server access log, whose request
lines carry the callback's ``?code=`` query.
"""

import logging
import re
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Loggers that echo full request lines.
ACCESS_LOGGERS = ("uvicorn.access",)

# Per-request chatter from the HTTP client stack.
NOISY_LOGGERS = ("httpx", "httpcore")

_MASK = "***"
_SECRET_PARAM = re.compile(
    r"(?i)\b(code|access_token|refresh_token|id_token|client_secret)=[^&\s\"']+"
)
_AUTH_SCHEME = re.compile(r"(?i)\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+")


def redact(message: str) -> str:
    message = _SECRET_PARAM.sub(lambda match: f"{match.group(1)}={_MASK}", message)
    return _AUTH_SCHEME.sub(lambda match: f"{match.group(1)} {_MASK}", message)


class RedactSecretsFilter(logging.Filter):
    """Rewrite the record's message with secrets masked; never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage()
        cleaned = redact(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging on stdout and install the redaction filter."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stdout)

    redactor = RedactSecretsFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactSecretsFilter) for f in handler.filters):
            handler.addFilter(redactor)
    for name in ACCESS_LOGGERS:
        access_logger = logging.getLogger(name)
        if not any(isinstance(f, RedactSecretsFilter) for f in access_logger.filters):
            access_logger.addFilter(redactor)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_FORMAT", "RedactSecretsFilter", "configure_logging", "redact"]
