"""Tenant-enforcing storage over a DB-API connection."""

from __future__ import annotations

from typing import Any

from .config import StorageConfig, default_config
from .context import Scope
from .enforcer import Enforcer
from .errors import StorageNotAvailableError
from .transaction import Transaction, _query_deadline


class Storage:
    """Runs statements on a DB-API connection, scoped to the caller's tenant.

    Every query is rewritten by :attr:`enforcer` before it reaches the
    database. :attr:`connection` gives direct, unenforced access.
    """

    def __init__(self, connection: Any, config: StorageConfig | None = None) -> None:
        self.connection = connection
        self.config = config if config is not None else default_config()
        self.enforcer = Enforcer()

    def _live(self) -> Any:
        if self.connection is None:
            raise StorageNotAvailableError("database connection not available")
        return self.connection

    def _run(self, scope: Scope, query: str, args: tuple) -> Any:
        enforced, params = self.enforcer.enforce_query(scope, query, args)
        cursor = self._live().cursor()
        cursor.execute(enforced, params)
        return cursor

    def query(self, scope: Scope, query: str, *args: Any) -> list:
        """Run a tenant-filtered query and return all rows."""
        with _query_deadline(self.connection, self.config.query_timeout):
            return self._run(scope, query, args).fetchall()

    def query_row(self, scope: Scope, query: str, *args: Any) -> Any:
        """Run a tenant-filtered query and return its first row, or None."""
        with _query_deadline(self.connection, self.config.query_timeout):
            return self._run(scope, query, args).fetchone()

    def execute(self, scope: Scope, query: str, *args: Any) -> Any:
        """Run a tenant-filtered statement, commit it and return its cursor."""
        with _query_deadline(self.connection, self.config.query_timeout):
            cursor = self._run(scope, query, args)
        self.connection.commit()
        return cursor

    def begin(self, scope: Scope) -> Transaction:
        """Start a transaction that enforces tenant isolation on every statement.

        The scope is accepted for symmetry; each statement carries its own.
        """
        return Transaction(self._live(), self.enforcer, self.config)

    def close(self) -> None:
        """Close the connection; closing twice is harmless."""
        if self.connection is None:
            return
        connection, self.connection = self.connection, None
        connection.close()

    def health(self) -> None:
        """Ping the database, raising StorageNotAvailableError if it fails."""
        connection = self._live()
        try:
            with _query_deadline(connection, self.config.health_check.timeout):
                cursor = connection.cursor()
                cursor.execute("SELECT 1")
                cursor.fetchone()
        except Exception as exc:
            raise StorageNotAvailableError(
                f"database health check failed: {exc}"
            ) from exc