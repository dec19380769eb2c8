"""Per-request tenant context and the scope that carries it."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import (
    InvalidContextError,
    MissingRequestIDError,
    MissingTenantIDError,
    MissingUserIDError,
)
from .tenant_id import TenantID

TENANT_CONTEXT_KEY = "tenant_context"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Scope:
    """An immutable bag of request-scoped values.

    ``with_value`` returns a new scope; the original is never changed.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[Any, Any] | None = None) -> None:
        self._values = dict(values or {})

    def with_value(self, key: Any, value: Any) -> Scope:
        """Return a new scope holding ``value`` under ``key``."""
        values = dict(self._values)
        values[key] = value
        return Scope(values)

    def value(self, key: Any) -> Any:
        """Return the value stored under ``key``, or None."""
        return self._values.get(key)

    def __repr__(self) -> str:
        return f"Scope({self._values!r})"


@dataclass(frozen=True)
class TenantContext:
    """Tenant, user and request identity for one request."""

    tenant_id: TenantID
    user_id: str
    request_id: str
    timestamp: datetime = field(default_factory=_now, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, TenantID):
            object.__setattr__(self, "tenant_id", TenantID(self.tenant_id))
        if not self.user_id:
            raise MissingUserIDError()
        if not self.request_id:
            raise MissingRequestIDError()

    def with_user(self, user_id: str) -> TenantContext:
        """Return a copy for another user, with a fresh timestamp."""
        if not user_id:
            raise MissingUserIDError()
        return dataclasses.replace(self, user_id=user_id, timestamp=_now())

    def attach(self, scope: Scope) -> Scope:
        """Return a new scope carrying this tenant context."""
        return scope.with_value(TENANT_CONTEXT_KEY, self)


def from_scope(scope: Scope | None) -> TenantContext:
    """Return the tenant context carried by ``scope``.

    Raises InvalidContextError when there is none.
    """
    if not isinstance(scope, Scope):
        raise InvalidContextError()
    found = scope.value(TENANT_CONTEXT_KEY)
    if not isinstance(found, TenantContext):
        raise InvalidContextError()
    if not found.tenant_id.value:
        raise MissingTenantIDError()
    return found