"""Validated, case-insensitive tenant identifiers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InvalidTenantIDError

_MAX_LENGTH = 255
_PATTERN = re.compile(r"[a-zA-Z0-9._-]+")


def validate_tenant_id(value) -> None:
    """Raise InvalidTenantIDError unless ``value`` is a well-formed tenant ID."""
    if not isinstance(value, str):
        raise InvalidTenantIDError()
    if not 1 <= len(value) <= _MAX_LENGTH:
        raise InvalidTenantIDError()
    if _PATTERN.fullmatch(value) is None:
        raise InvalidTenantIDError()


@dataclass(frozen=True)
class TenantID:
    """A tenant identifier: letters, digits, dashes, underscores and dots.

    The value is stored lower-cased, so identifiers compare case-insensitively.
    """

    value: str

    def __post_init__(self) -> None:
        validate_tenant_id(self.value)
        object.__setattr__(self, "value", self.value.lower())

    def __str__(self) -> str:
        return self.value