"""Screening of client queries before they reach any paid collaborator."""

import logging
import re

from query_guard.config import settings
from query_guard.errors import InvalidQuery

logger = logging.getLogger(__name__)

# Prompt-injection and markup attempts
SUSPICIOUS_PATTERN = re.compile(
    r"(ignore|bypass|system|prompt|instructions|admin|root|password|token|api.?key|<script|javascript:|on\w+\s*=)",
    re.IGNORECASE,
)

# Queries never reach a database, but SQL fragments are never legitimate here either
SQL_INJECTION_PATTERN = re.compile(
    r"(union\s+select|drop\s+table|insert\s+into|delete\s+from|update\s+.*\s+set|--|;\s*$)",
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r"\s+")


class QueryValidator:
    """Length and content checks for chatbot queries."""

    def __init__(self, max_length: int | None = None) -> None:
        self._max_length = max_length if max_length is not None else settings.query_max_length

    @property
    def max_length(self) -> int:
        return self._max_length

    def validate(self, query: str | None) -> None:
        """Reject empty, oversized or suspicious queries.

        Raises:
            InvalidQuery: With a reason safe to show the client
        """
        if query is None or not query.strip():
            raise InvalidQuery("Query cannot be empty")

        if len(query) > self._max_length:
            logger.warning("Query too long: %d chars (max: %d)", len(query), self._max_length)
            raise InvalidQuery(f"Query too long (max {self._max_length} characters)")

        if SUSPICIOUS_PATTERN.search(query):
            logger.warning("Suspicious query detected: %r", query)
            raise InvalidQuery("Query contains suspicious keywords")

        if SQL_INJECTION_PATTERN.search(query):
            logger.warning("Potential SQL injection attempt: %r", query)
            raise InvalidQuery("Query contains invalid characters")

    @staticmethod
    def sanitize(query: str | None) -> str:
        """Trim and collapse runs of whitespace to a single space."""
        if query is None:
            return ""
        return _WHITESPACE.sub(" ", query.strip())

    def clean(self, query: str | None) -> str:
        """Validate then sanitize.

        Raises:
            InvalidQuery: If validation fails
        """
        self.validate(query)
        return self.sanitize(query)
