"""
Logging utilities for the credential service.

Provides a consistent logging format and a helper that keeps bearer values
out of log lines.
"""

import logging
import sys

_VISIBLE_PREFIX = 8


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def redact(secret: str | None) -> str:
    """Return a loggable prefix of a token or state value."""
    if not secret:
        return "<empty>"
    return f"{secret[:_VISIBLE_PREFIX]}..."


__all__ = ["configure_logging", "redact"]
