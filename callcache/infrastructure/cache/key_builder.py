"""
Cache Key Builder

Builds "<operation>:<scope>:<digest>" keys. The scope is "u=<identity>" for a
caller identity and "anonymous" for shared data. The digest is the MD5 of the
canonical JSON encoding of the call arguments, so two argument mappings with
the same content always produce the same key regardless of insertion order.

MD5 is used for speed; a collision costs at most a wrong cache hit between two
argument sets of the same operation and identity.

Author: System Architect
Date: 2026-03-02
"""

import dataclasses
import hashlib
from collections.abc import Mapping
from enum import Enum
from typing import Any
from urllib.parse import quote

import orjson
from pydantic import BaseModel

from callcache.core.config.constants import ANONYMOUS_IDENTITY, IDENTITY_TAG, KEY_SEPARATOR
from callcache.core.exceptions import CacheKeyError


def canonicalize(value: Any) -> Any:
    """
    Convert value into a structure whose JSON encoding is order-independent.

    - Mappings: keys stringified and sorted
    - Lists and tuples: lists (order preserved)
    - Sets and frozensets: sorted lists
    - Dataclasses and pydantic models: mappings
    - Enums: their values
    """
    if isinstance(value, Enum):
        return canonicalize(value.value)
    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json"))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return canonicalize(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {str(k): canonicalize(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(item) for item in value]
        return sorted(items, key=lambda item: orjson.dumps(item, option=orjson.OPT_SORT_KEYS))
    return value


class CacheKeyBuilder:
    """
    Pure function object that derives cache keys.

    Usage:
        builder = CacheKeyBuilder()
        key = builder.build_key("getAvailableSlots", "u1", {"doctorId": "d1", "date": "2026-03-02"})
        # "getAvailableSlots:u=u1:1f3870be274f6c49b3e31a0c6728957f"
    """

    def __init__(self, separator: str = KEY_SEPARATOR, anonymous: str = ANONYMOUS_IDENTITY):
        self._separator = separator
        self._anonymous = anonymous

    def digest(self, args: Mapping[str, Any] | None) -> str:
        """
        MD5 hex digest of the canonical encoding of args.

        Raises:
            CacheKeyError: If args contain values that cannot be encoded
        """
        try:
            encoded = orjson.dumps(canonicalize(args or {}), option=orjson.OPT_SORT_KEYS)
        except (TypeError, orjson.JSONEncodeError) as e:
            raise CacheKeyError.from_exception(e, message=f"Cannot build cache key: {e}") from e
        return hashlib.md5(encoded).hexdigest()

    def scope(self, identity: str | None) -> str:
        """
        Identity segment of a key.

        A caller identity is tagged and percent-quoted ("u=<identity>") so no
        identity, including the literal string "anonymous", can produce the
        anonymous sentinel or smuggle in a separator.
        """
        if not identity:
            return self._anonymous
        return IDENTITY_TAG + quote(identity, safe="@.-_~")

    def build_key(
        self, operation: str, identity: str | None = None, args: Mapping[str, Any] | None = None
    ) -> str:
        """
        Build the cache key for one call.

        Args:
            operation: Remote operation name
            identity: Caller identity, or None for shared data
            args: Call arguments

        Returns:
            "<operation>:<'u=' + identity, or 'anonymous'>:<digest>"
        """
        return self._separator.join((operation, self.scope(identity), self.digest(args)))

    def prefix(self, operation: str, identity: str | None = None) -> str:
        """Key prefix shared by every call of operation (optionally for one identity)."""
        if identity is None:
            return f"{operation}{self._separator}"
        return self._separator.join((operation, self.scope(identity), ""))


def build_key(operation: str, identity: str | None = None, args: Mapping[str, Any] | None = None) -> str:
    """Module-level shortcut for CacheKeyBuilder().build_key()."""
    return _default_builder.build_key(operation, identity, args)


_default_builder = CacheKeyBuilder()
