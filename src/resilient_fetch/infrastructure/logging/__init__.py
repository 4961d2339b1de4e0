"""Structured logging setup and log redaction."""

from .config import configure_logging
from .sanitization import LogSanitizer, StructlogSanitizer, sanitize_headers

__all__ = ["configure_logging", "LogSanitizer", "StructlogSanitizer", "sanitize_headers"]
