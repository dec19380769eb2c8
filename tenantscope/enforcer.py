"""SQL query rewriting that scopes statements to the current tenant.

The enforcer injects a ``tenant_id = '<tenant>'`` filter into SELECT, UPDATE
and DELETE statements and rejects dangerous schema-changing statements.
"""

from __future__ import annotations

from typing import Any, Sequence

from .context import Scope, from_scope
from .errors import UnsafeQueryError

_DANGEROUS = ("DROP TABLE", "DROP DATABASE", "TRUNCATE", "ALTER TABLE")
_TRAILING_CLAUSES = (" ORDER BY ", " GROUP BY ", " LIMIT ", " HAVING ")
_WHERE = " WHERE "


class Enforcer:
    """Rewrites SQL queries to filter on the tenant column."""

    def __init__(self, tenant_column: str = "tenant_id") -> None:
        self.tenant_column = tenant_column

    def enforce_query(
        self, scope: Scope | None, query: str, args: Sequence[Any] | None = None
    ) -> tuple[str, list[Any]]:
        """Return the tenant-filtered query and its (unchanged) arguments."""
        tenant = from_scope(scope)
        self.validate_query(query)
        return self._rewrite(query, tenant.tenant_id.value), list(args or ())

    def validate_query(self, query: str) -> None:
        """Raise UnsafeQueryError for empty or schema-destroying queries."""
        if not query:
            raise UnsafeQueryError("query cannot be empty")
        upper = query.strip().upper()
        for keyword in _DANGEROUS:
            if keyword in upper:
                raise UnsafeQueryError(f"dangerous operation not allowed: {keyword}")

    def supported_operations(self) -> list[str]:
        """Return the statement kinds this enforcer understands."""
        return ["SELECT", "INSERT", "UPDATE", "DELETE"]

    def verify_tenant_isolation(self, query: str, expected_tenant_id: str) -> bool:
        """Tell whether ``query`` filters on ``expected_tenant_id``."""
        return self._extract_tenant_id(query) == expected_tenant_id

    def _rewrite(self, query: str, tenant_id: str) -> str:
        upper = query.strip().upper()
        condition = f"{self.tenant_column} = '{tenant_id}'"

        if upper.startswith(("SELECT", "DELETE")):
            where = upper.find(_WHERE)
            if where != -1:
                return self._and_into_where(query, where, condition)
            for clause in _TRAILING_CLAUSES:
                pos = upper.find(clause)
                if pos != -1:
                    return query[:pos] + _WHERE + condition + query[pos:]
            return query + _WHERE + condition

        if upper.startswith("UPDATE"):
            where = upper.find(_WHERE)
            if where != -1:
                return self._and_into_where(query, where, condition)
            return query + _WHERE + condition

        return query

    @staticmethod
    def _and_into_where(query: str, where: int, condition: str) -> str:
        split = where + len(_WHERE)
        return query[:split] + condition + " AND (" + query[split:].strip() + ")"

    def _extract_tenant_id(self, query: str) -> str:
        lower = query.lower()
        idx = lower.find(self.tenant_column)
        if idx == -1:
            return ""
        remaining = lower[idx:]
        _, eq, after_eq = remaining.partition("=")
        if not eq:
            return ""
        _, quote, after_quote = after_eq.partition("'")
        if not quote:
            return ""
        value, end_quote, _ = after_quote.partition("'")
        if not end_quote:
            return ""
        return value