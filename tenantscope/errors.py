"""Exception types shared by the tenant-scoping components.

Every error derives from :class:`TenantKitError`, so callers can catch the
whole family at once or pick out a single condition.
"""

from __future__ import annotations


class TenantKitError(Exception):
    """Base class for all tenant-scoping errors."""

    default_message = "tenant error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class TenantNotFoundError(TenantKitError, LookupError):
    default_message = "tenant not found"


class TenantExistsError(TenantKitError):
    default_message = "tenant already exists"


class InvalidContextError(TenantKitError):
    default_message = "invalid tenant context"


class MissingTenantIDError(TenantKitError, ValueError):
    default_message = "missing tenant ID in context"


class MissingUserIDError(TenantKitError, ValueError):
    default_message = "missing user ID in context"


class MissingRequestIDError(TenantKitError, ValueError):
    default_message = "missing request ID in context"


class UnsafeQueryError(TenantKitError):
    default_message = "unsafe query: missing tenant filter"


class QueryParseError(TenantKitError):
    default_message = "failed to parse SQL query"


class QueryRewriteError(TenantKitError):
    default_message = "failed to rewrite SQL query"


class StorageNotAvailableError(TenantKitError):
    default_message = "storage service not available"


class TransactionFailedError(TenantKitError):
    default_message = "transaction failed"


class CacheNotAvailableError(TenantKitError):
    default_message = "cache service not available"


class QuotaExceededError(TenantKitError):
    default_message = "quota exceeded"


class QuotaNotFoundError(TenantKitError, LookupError):
    default_message = "quota not found"


class RateLimitExceededError(TenantKitError):
    default_message = "rate limit exceeded"


class InvalidTenantIDError(TenantKitError, ValueError):
    default_message = (
        "invalid tenant ID: must be 1-255 characters, "
        "alphanumeric with dashes, underscores, and dots"
    )