import logging
import re
from typing import Iterable

REDACTED = "[REDACTED]"

# Private keys and key=value style secrets. A name only matches when a ':' or
# '=' follows it.
SENSITIVE_PATTERNS = (
    re.compile(r"0x[a-fA-F0-9]{64}"),
    re.compile(r"private_?key['\"]?\s*[:=]\s*['\"]?[a-fA-F0-9x]+['\"]?", re.IGNORECASE),
    re.compile(r"password['\"]?\s*[:=]\s*['\"]?[^'\"}\s,]+['\"]?", re.IGNORECASE),
    re.compile(r"secret['\"]?\s*[:=]\s*['\"]?[^'\"}\s,]+['\"]?", re.IGNORECASE),
    re.compile(r"api_?key['\"]?\s*[:=]\s*['\"]?[^'\"}\s,]+['\"]?", re.IGNORECASE),
)


def redact(text: str, patterns: Iterable[re.Pattern] = SENSITIVE_PATTERNS) -> str:
    """Replace every sensitive fragment in `text` with a placeholder."""
    for pattern in patterns:
        text = pattern.sub(REDACTED, text)
    return text


class SensitiveDataFilter(logging.Filter):
    """Rewrites log records so private keys and passwords never reach a handler."""

    def filter(self, record):
        message = record.getMessage()
        safe = redact(message)
        if safe != message:
            record.msg = safe
            record.args = None
        return True


class RedactingFormatter(logging.Formatter):
    """Formatter that also scrubs tracebacks and stack info."""

    def format(self, record):
        return redact(super().format(record))


def configure_logging(level: str = "INFO", stream=None) -> logging.Handler:
    """Install a redacting stream handler on the `crownsk` logger."""
    handler = logging.StreamHandler(stream)
    handler.setFormatter(RedactingFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S"))
    handler.addFilter(SensitiveDataFilter())

    logger = logging.getLogger("crownsk")
    for existing in list(logger.handlers):
        if getattr(existing, "_crownsk_handler", False):
            logger.removeHandler(existing)
    handler._crownsk_handler = True
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
