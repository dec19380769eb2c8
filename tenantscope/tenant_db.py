"""Tenant-aware wrapper for DB-API connections using ``?`` placeholders.

Every statement gets a ``tenant_column = ?`` condition and the tenant ID is
bound as an argument. INSERT statements gain the tenant column and value.
Skip tables, a skip flag on the scope, or :meth:`TenantDB.without_tenant`
bypass enforcement.
"""

from __future__ import annotations

import copy
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .context import Scope, TenantContext, from_scope
from .errors import StorageNotAvailableError, TenantKitError, TransactionFailedError

SKIP_TENANT_KEY = "sqlx_skip_tenant"
DEFAULT_TENANT_COLUMN = "tenant_id"

_TRAILING_KEYWORDS = ("order by", "limit", "offset", "group by", "having")
_INSERT_INTO = "insert into"
_VALUES = "values"
_WHERE = "where"


def inject_tenant_condition(query: str, tenant_column: str) -> tuple[str, int]:
    """Add ``tenant_column = ?`` to the WHERE clause of ``query``.

    Returns the new query and the index at which the tenant ID must be
    inserted into the statement's arguments.
    """
    lower = query.lower()
    condition = f"{tenant_column} = ?"

    where = lower.find(_WHERE)
    if where != -1:
        position = query[:where].count("?")
        split = where + len(_WHERE)
        return query[:split] + " " + condition + " AND" + query[split:], position

    insert_at = len(query)
    for keyword in _TRAILING_KEYWORDS:
        pos = lower.find(keyword)
        if pos != -1 and pos < insert_at:
            insert_at = pos
    position = query.count("?")
    return query[:insert_at] + " WHERE " + condition + " " + query[insert_at:], position


def inject_tenant_into_insert(query: str, tenant_column: str) -> str:
    """Append the tenant column and a ``?`` placeholder to an INSERT statement.

    Statements whose shape is not recognised are returned unchanged.
    """
    lower = query.lower()
    values = lower.find(_VALUES)
    if values == -1:
        return query
    insert = lower.find(_INSERT_INTO)
    if insert == -1:
        return query

    target = query[insert + len(_INSERT_INTO) : values].strip()
    table, paren, columns = target.partition("(")
    if not paren:
        return query
    table = table.strip()
    columns = columns.strip().removesuffix(")")

    after_values = query[values + len(_VALUES) :].strip()
    if not after_values.startswith("("):
        return query
    end = after_values.find(")")
    if end == -1:
        return query
    placeholders = after_values[1:end]
    rest = after_values[end + 1 :]
    return (
        f"INSERT INTO {table} ({columns}, {tenant_column}) "
        f"VALUES ({placeholders}, ?){rest}"
    )


def tenant_id_from(scope: Scope | None) -> str:
    """Return the tenant ID carried by ``scope``, raising if there is none."""
    return from_scope(scope).tenant_id.value


def skip_tenant(scope: Scope) -> Scope:
    """Return a scope whose statements bypass tenant enforcement."""
    return scope.with_value(SKIP_TENANT_KEY, True)


def with_tenant(scope: Scope | None, tenant_id: str) -> Scope:
    """Return a scope carrying a system tenant context for ``tenant_id``."""
    context = TenantContext(tenant_id, "system", "sqlx-adapter")
    return context.attach(scope if scope is not None else Scope())


def _skip_flagged(scope: Scope | None) -> bool:
    return isinstance(scope, Scope) and scope.value(SKIP_TENANT_KEY) is True


def _as_dict(cursor: Any, row: Sequence[Any]) -> dict[str, Any]:
    names = [column[0] for column in cursor.description]
    return dict(zip(names, row))


@dataclass(frozen=True)
class TenantDBConfig:
    """Tenant column name and tables that are never tenant-filtered."""

    tenant_column: str = DEFAULT_TENANT_COLUMN
    skip_tables: tuple[str, ...] = ()


class _TenantRunner(ABC):
    """Statement execution shared by databases and transactions."""

    tenant_column: str
    skip_tables: frozenset[str]

    @abstractmethod
    def _live(self) -> Any:
        """Return the open connection or raise."""

    @abstractmethod
    def _skips(self, scope: Scope | None, query: str) -> bool:
        """Tell whether enforcement is bypassed for this statement."""

    @abstractmethod
    def _tenant(self, scope: Scope | None) -> str:
        """Return the tenant ID that statements are scoped to."""

    @abstractmethod
    def _after_write(self) -> None:
        """Finish a data-changing statement."""

    def _matches_skip_table(self, query: str) -> bool:
        lower = query.lower()
        return any(table.lower() in lower for table in self.skip_tables)

    def _cursor(self, query: str, params: Iterable[Any]) -> Any:
        cursor = self._live().cursor()
        cursor.execute(query, list(params))
        return cursor

    def _filtered(self, query: str, args: Sequence[Any], tenant: str) -> Any:
        rewritten, position = inject_tenant_condition(query, self.tenant_column)
        params = list(args)
        params.insert(position, tenant)
        return self._cursor(rewritten, params)

    def _select(self, scope: Scope | None, query: str, args: Sequence[Any]) -> Any:
        if self._skips(scope, query):
            return self._cursor(query, args)
        return self._filtered(query, args, self._tenant(scope))

    def _run_query(self, scope: Scope | None, query: str, args: Sequence[Any]) -> list:
        return self._select(scope, query, args).fetchall()

    def _run_query_row(
        self, scope: Scope | None, query: str, args: Sequence[Any]
    ) -> Any:
        if self._skips(scope, query):
            return self._cursor(query, args).fetchone()
        try:
            tenant = self._tenant(scope)
        except TenantKitError:
            return None
        return self._filtered(query, args, tenant).fetchone()

    def _run_fetch_one(
        self, scope: Scope | None, query: str, args: Sequence[Any]
    ) -> dict[str, Any]:
        cursor = self._select(scope, query, args)
        row = cursor.fetchone()
        if row is None:
            raise LookupError("no rows in result set")
        return _as_dict(cursor, row)

    def _run_fetch_all(
        self, scope: Scope | None, query: str, args: Sequence[Any]
    ) -> list[dict[str, Any]]:
        cursor = self._select(scope, query, args)
        return [_as_dict(cursor, row) for row in cursor.fetchall()]

    def _run_execute(self, scope: Scope | None, query: str, args: Sequence[Any]) -> Any:
        if self._skips(scope, query):
            cursor = self._cursor(query, args)
        else:
            tenant = self._tenant(scope)
            if query.strip().lower().startswith("insert"):
                rewritten = inject_tenant_into_insert(query, self.tenant_column)
                cursor = self._cursor(rewritten, [*args, tenant])
            else:
                cursor = self._filtered(query, args, tenant)
        self._after_write()
        return cursor

    def _run_named_execute(
        self, scope: Scope | None, query: str, params: Mapping[str, Any]
    ) -> Any:
        if not self._skips(scope, query):
            self._tenant(scope)
        cursor = self._live().cursor()
        cursor.execute(query, params)
        self._after_write()
        return cursor


class TenantDB(_TenantRunner):
    """A DB-API connection whose statements are scoped to the caller's tenant.

    Writes outside a transaction are committed immediately.
    """

    def __init__(self, connection: Any, config: TenantDBConfig | None = None) -> None:
        config = config if config is not None else TenantDBConfig()
        self.connection = connection
        self.tenant_column = config.tenant_column or DEFAULT_TENANT_COLUMN
        self.skip_tables = frozenset(config.skip_tables)

    def should_skip(self, scope: Scope | None, query: str) -> bool:
        """Tell whether enforcement is bypassed by the scope or a skip table."""
        return _skip_flagged(scope) or self._matches_skip_table(query)

    def _skips(self, scope: Scope | None, query: str) -> bool:
        return self.should_skip(scope, query)

    def _tenant(self, scope: Scope | None) -> str:
        return tenant_id_from(scope)

    def _live(self) -> Any:
        if self.connection is None:
            raise StorageNotAvailableError("database connection not available")
        return self.connection

    def _after_write(self) -> None:
        self._live().commit()

    def query(self, scope: Scope | None, query: str, *args: Any) -> list:
        """Run a tenant-filtered query and return all rows."""
        return self._run_query(scope, query, args)

    def query_row(self, scope: Scope | None, query: str, *args: Any) -> Any:
        """Run a tenant-filtered query and return its first row.

        Returns None when there is no row, and also when the scope carries
        no tenant, since no row can belong to an unknown tenant.
        """
        return self._run_query_row(scope, query, args)

    def fetch_one(self, scope: Scope | None, query: str, *args: Any) -> dict[str, Any]:
        """Return the first row as a column-name mapping; LookupError if none."""
        return self._run_fetch_one(scope, query, args)

    def fetch_all(
        self, scope: Scope | None, query: str, *args: Any
    ) -> list[dict[str, Any]]:
        """Return every row as a column-name mapping."""
        return self._run_fetch_all(scope, query, args)

    def execute(self, scope: Scope | None, query: str, *args: Any) -> Any:
        """Run a tenant-scoped INSERT, UPDATE or DELETE, commit, return its cursor."""
        return self._run_execute(scope, query, args)

    def named_execute(
        self, scope: Scope | None, query: str, params: Mapping[str, Any]
    ) -> Any:
        """Run a statement with named parameters.

        The tenant column is not injected: ``params`` must carry it. The
        scope must still hold a tenant unless enforcement is skipped.
        """
        return self._run_named_execute(scope, query, params)

    def begin(self, scope: Scope | None) -> TenantTx:
        """Start a transaction scoped to the tenant carried by ``scope``."""
        return TenantTx(self, scope)

    def without_tenant(self) -> TenantDB:
        """Return a copy that skips enforcement for every query containing ``*``."""
        clone = copy.copy(self)
        clone.skip_tables = frozenset({"*"})
        return clone

    def close(self) -> None:
        """Close the connection; closing twice is harmless."""
        if self.connection is None:
            return
        connection, self.connection = self.connection, None
        connection.close()


class TenantTx(_TenantRunner):
    """A transaction scoped to the tenant of the scope it began with.

    The tenant always comes from that scope, whatever scope a statement is
    given. As a context manager it commits on success and rolls back on error.
    """

    def __init__(self, db: TenantDB, scope: Scope | None) -> None:
        self.scope = scope
        self.tenant_column = db.tenant_column
        self.skip_tables = db.skip_tables
        self._connection = db._live()
        self._finished = False

    def should_skip(self, query: str) -> bool:
        """Tell whether enforcement is bypassed by the scope or a skip table."""
        return _skip_flagged(self.scope) or self._matches_skip_table(query)

    def _skips(self, scope: Scope | None, query: str) -> bool:
        return self.should_skip(query)

    def _tenant(self, scope: Scope | None) -> str:
        return tenant_id_from(self.scope)

    def _live(self) -> Any:
        if self._finished:
            raise TransactionFailedError("transaction is already closed")
        return self._connection

    def _after_write(self) -> None:
        return None

    def query(self, scope: Scope | None, query: str, *args: Any) -> list:
        """Run a tenant-filtered query in the transaction and return all rows."""
        return self._run_query(scope, query, args)

    def query_row(self, scope: Scope | None, query: str, *args: Any) -> Any:
        """Return the first row, or None when there is none or no tenant."""
        return self._run_query_row(scope, query, args)

    def fetch_one(self, scope: Scope | None, query: str, *args: Any) -> dict[str, Any]:
        """Return the first row as a column-name mapping; LookupError if none."""
        return self._run_fetch_one(scope, query, args)

    def fetch_all(
        self, scope: Scope | None, query: str, *args: Any
    ) -> list[dict[str, Any]]:
        """Return every row as a column-name mapping."""
        return self._run_fetch_all(scope, query, args)

    def execute(self, scope: Scope | None, query: str, *args: Any) -> Any:
        """Run a tenant-scoped INSERT, UPDATE or DELETE and return its cursor."""
        return self._run_execute(scope, query, args)

    def named_execute(
        self, scope: Scope | None, query: str, params: Mapping[str, Any]
    ) -> Any:
        """Run a statement with named parameters; ``params`` must carry the tenant."""
        return self._run_named_execute(scope, query, params)

    def commit(self) -> None:
        """Commit the transaction."""
        connection = self._live()
        self._finished = True
        connection.commit()

    def rollback(self) -> None:
        """Roll back the transaction."""
        connection = self._live()
        self._finished = True
        connection.rollback()

    def __enter__(self) -> TenantTx:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._finished:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


def connect(database: str, config: TenantDBConfig | None = None) -> TenantDB:
    """Open an SQLite database and wrap it with tenant enforcement."""
    try:
        connection = sqlite3.connect(database)
    except sqlite3.Error as exc:
        raise StorageNotAvailableError(f"failed to connect to database: {exc}") from exc
    return TenantDB(connection, config)