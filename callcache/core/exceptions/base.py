"""
Root of the callcache exception tree.

Themed subclasses live in cache.py and registry.py. Errors raised by a
remote handler are never wrapped in these types; callers see them as-is.

Author: System Architect
Date: 2026-03-02
"""

from typing import Any


class CallCacheError(Exception):
    """
    Base class for errors raised by the cache engine itself.

    Attributes:
        message: Human-readable description
        key: Cache key involved, when there is one
        details: Extra structured fields for logs and the admin API

    Example:
        raise CacheSerializationError(
            "Envelope could not be decoded",
            key="getMyUserProfile:u1:5d41...",
            details={"category": "profile"},
        )
    """

    def __init__(
        self, message: str, key: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.key = key
        self.details = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form used by the admin error handler."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "key": self.key,
            "details": self.details,
        }

    def with_context(self, **context: Any) -> "CallCacheError":
        """Merge context into details and return self."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        parts = [f"message={self.message!r}"]
        if self.key:
            parts.append(f"key={self.key!r}")
        if self.details:
            parts.append(f"details={self.details!r}")
        return f"{type(self).__name__}({', '.join(parts)})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        key: str | None = None,
        **details: Any,
    ) -> "CallCacheError":
        """
        Wrap a redis or orjson failure, keeping its type and text in details.

        Example:
            try:
                raw = await client.get(storage_key)
            except RedisError as e:
                raise CacheKeyError.from_exception(e, key=storage_key) from e
        """
        return cls(
            message or str(exc),
            key=key,
            details={
                "original_error": type(exc).__name__,
                "original_message": str(exc),
                **details,
            },
        )


class ConfigurationError(CallCacheError):
    """Invalid or missing configuration, including unresolvable operations."""
