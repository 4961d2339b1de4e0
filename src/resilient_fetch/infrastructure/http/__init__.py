"""HTTP transport adapters."""

from .transport import HttpxTransport, secure_fetch

__all__ = ["HttpxTransport", "secure_fetch"]
