"""
Typed failures surfaced to callers of shopstate.

Store failures (redis.RedisError) are not wrapped: foreground callers see them
as raised by redis-py, and background workers log them and move on.
"""


class ShopStateError(Exception):
    """Base class for logical errors raised by shopstate."""


class InvalidIdentifierError(ShopStateError, ValueError):
    """A token, session id or item id was empty or not a string."""

    def __init__(self, kind: str, value):
        self.kind = kind
        self.value = value
        super().__init__(f"invalid {kind}: {value!r}")


class ConfigError(ShopStateError):
    """Unknown or out-of-range runtime setting."""


class SupervisorError(ShopStateError):
    """Workers were started twice or controlled from the wrong state."""


def require_id(kind: str, value) -> str:
    """Return value if it is a non-empty string, raise InvalidIdentifierError otherwise."""
    if not isinstance(value, str) or not value:
        raise InvalidIdentifierError(kind, value)
    return value


class RowSerializationError(ShopStateError):
    """A fetched row could not be turned into a cache payload."""
