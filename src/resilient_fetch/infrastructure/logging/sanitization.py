"""
Logging sanitization for request data.

Request URLs and headers routinely carry API keys and bearer tokens
(backend-as-a-service clients pass ``apikey`` both as a header and as a
query parameter). This module makes sure none of it reaches log output.
"""

import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


class LogSanitizer:
    """Sanitizes sensitive data from log output."""

    # Sensitive field patterns (case-insensitive substring match)
    SENSITIVE_FIELD_PATTERNS = {
        'password', 'passwd', 'secret', 'token', 'apikey', 'api_key',
        'api-key', 'authorization', 'auth', 'bearer', 'cookie',
        'private_key', 'session',
    }

    # Query parameters whose values are always redacted
    SENSITIVE_QUERY_PARAMS = {
        'apikey', 'api_key', 'key', 'token', 'access_token', 'refresh_token',
        'secret', 'password', 'auth',
    }

    # Sensitive value patterns (regex)
    SENSITIVE_VALUE_PATTERNS = [
        # JWT tokens (basic pattern)
        r'\beyJ[A-Za-z0-9-_]+\.[A-Za-z0-9-_]+\.[A-Za-z0-9-_]*',
        # Bearer credentials
        r'\bBearer\s+[A-Za-z0-9\-._~+/]+=*',
    ]

    REPLACEMENT_TEXT = "***REDACTED***"

    @classmethod
    def sanitize_dict(cls, data: Mapping[str, Any], max_depth: int = 10) -> Dict[str, Any]:
        """
        Recursively sanitize a mapping, removing sensitive data.

        Args:
            data: Mapping to sanitize (event dicts, headers, params)
            max_depth: Maximum recursion depth

        Returns:
            Sanitized dictionary with sensitive fields redacted
        """
        if max_depth <= 0:
            return {"error": "max_depth_reached"}

        sanitized = {}
        for key, value in data.items():
            if cls.is_sensitive_field(str(key)):
                sanitized[key] = cls.REPLACEMENT_TEXT
            elif isinstance(value, Mapping):
                sanitized[key] = cls.sanitize_dict(value, max_depth - 1)
            elif isinstance(value, list):
                sanitized[key] = cls._sanitize_list(value, max_depth - 1)
            else:
                sanitized[key] = cls._sanitize_value(value)

        return sanitized

    @classmethod
    def is_sensitive_field(cls, name: str) -> bool:
        lowered = name.lower()
        return any(pattern in lowered for pattern in cls.SENSITIVE_FIELD_PATTERNS)

    @classmethod
    def _sanitize_list(cls, data: List[Any], max_depth: int) -> List[Any]:
        if max_depth <= 0:
            return ["max_depth_reached"]

        sanitized = []
        for item in data:
            if isinstance(item, Mapping):
                sanitized.append(cls.sanitize_dict(item, max_depth - 1))
            elif isinstance(item, list):
                sanitized.append(cls._sanitize_list(item, max_depth - 1))
            else:
                sanitized.append(cls._sanitize_value(item))
        return sanitized

    @classmethod
    def _sanitize_value(cls, value: Any) -> Any:
        if isinstance(value, str):
            return cls.sanitize_string(value)
        return value

    @classmethod
    def sanitize_string(cls, text: str) -> str:
        """
        Sanitize a string by replacing sensitive patterns.

        Args:
            text: String to sanitize

        Returns:
            Sanitized string with sensitive data redacted
        """
        if not isinstance(text, str):
            text = str(text)

        sanitized = text
        for pattern in cls.SENSITIVE_VALUE_PATTERNS:
            sanitized = re.sub(pattern, cls.REPLACEMENT_TEXT, sanitized)
        return sanitized

    @classmethod
    def sanitize_url(cls, url: Any) -> str:
        """
        Sanitize URL by removing credentials and sensitive query parameters.

        Args:
            url: URL to sanitize (string or ``httpx.URL``)

        Returns:
            Sanitized URL string
        """
        url = str(url)
        try:
            parts = urlsplit(url)
        except ValueError:
            return cls.REPLACEMENT_TEXT

        netloc = parts.netloc
        if '@' in netloc:
            netloc = '***:***@' + netloc.rsplit('@', 1)[1]

        query = parts.query
        if query:
            pairs = [
                (name, cls.REPLACEMENT_TEXT if name.lower() in cls.SENSITIVE_QUERY_PARAMS else value)
                for name, value in parse_qsl(query, keep_blank_values=True)
            ]
            query = urlencode(pairs, safe='*')

        return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class StructlogSanitizer:
    """Structlog processor for sanitizing log events."""

    def __init__(self, sanitizer: Optional[LogSanitizer] = None):
        self.sanitizer = sanitizer or LogSanitizer()

    def __call__(self, logger, method_name, event_dict):
        """
        Structlog processor that sanitizes event data.

        Args:
            logger: Logger instance
            method_name: Logging method name
            event_dict: Event dictionary to sanitize

        Returns:
            Sanitized event dictionary
        """
        sanitized_event = self.sanitizer.sanitize_dict(event_dict)

        if 'url' in sanitized_event:
            sanitized_event['url'] = self.sanitizer.sanitize_url(sanitized_event['url'])

        return sanitized_event


def sanitize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Redact credential-bearing headers for logging."""
    return {
        name: LogSanitizer.REPLACEMENT_TEXT if LogSanitizer.is_sensitive_field(name) else value
        for name, value in headers.items()
    }

