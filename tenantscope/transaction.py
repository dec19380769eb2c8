"""Tenant-enforcing wrapper around an open database transaction."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator

from .config import StorageConfig, default_config
from .context import Scope
from .enforcer import Enforcer
from .errors import TransactionFailedError

_PROGRESS_STEPS = 1000


@contextmanager
def _query_deadline(connection: Any, timeout: timedelta) -> Iterator[None]:
    """Abort statements on ``connection`` that run past ``timeout``.

    Only connections offering ``set_progress_handler`` (such as sqlite3) can be
    interrupted; on others the block runs without a deadline.
    """
    install = getattr(connection, "set_progress_handler", None)
    seconds = timeout.total_seconds()
    if install is None or seconds <= 0:
        yield
        return
    limit = time.monotonic() + seconds
    install(lambda: 1 if time.monotonic() > limit else 0, _PROGRESS_STEPS)
    try:
        yield
    finally:
        install(None, _PROGRESS_STEPS)


class Transaction:
    """A transaction whose statements are all scoped to the caller's tenant.

    Use it as a context manager to commit on success and roll back on error.
    """

    def __init__(
        self,
        connection: Any,
        enforcer: Enforcer | None = None,
        config: StorageConfig | None = None,
    ) -> None:
        self._connection = connection
        self.enforcer = enforcer if enforcer is not None else Enforcer()
        self.config = config if config is not None else default_config()
        self._done = threading.Event()

    def _live(self) -> Any:
        if self._connection is None:
            raise TransactionFailedError("transaction is closed")
        return self._connection

    def _run(self, scope: Scope, query: str, args: tuple) -> Any:
        enforced, params = self.enforcer.enforce_query(scope, query, args)
        connection = self._live()
        cursor = connection.cursor()
        cursor.execute(enforced, params)
        return cursor

    def query(self, scope: Scope, query: str, *args: Any) -> list:
        """Run a tenant-filtered query and return all rows."""
        connection = self._live()
        with _query_deadline(connection, self.config.query_timeout):
            return self._run(scope, query, args).fetchall()

    def query_row(self, scope: Scope, query: str, *args: Any) -> Any:
        """Run a tenant-filtered query and return its first row, or None."""
        connection = self._live()
        with _query_deadline(connection, self.config.query_timeout):
            return self._run(scope, query, args).fetchone()

    def execute(self, scope: Scope, query: str, *args: Any) -> Any:
        """Run a tenant-filtered statement and return its cursor."""
        connection = self._live()
        with _query_deadline(connection, self.config.query_timeout):
            return self._run(scope, query, args)

    def begin(self, scope: Scope) -> Transaction:
        """Nested transactions are not supported; always raises."""
        raise TransactionFailedError("nested transactions are not supported")

    def close(self) -> None:
        """Transactions end with commit or rollback; always raises."""
        raise TransactionFailedError(
            "cannot close transaction directly; use commit or rollback"
        )

    def health(self) -> None:
        """Raise TransactionFailedError if the transaction has ended."""
        self._live()

    def commit(self) -> None:
        """Commit the transaction and mark it done."""
        connection = self._finish()
        try:
            connection.commit()
        finally:
            self._done.set()

    def rollback(self) -> None:
        """Roll back the transaction and mark it done."""
        connection = self._finish()
        try:
            connection.rollback()
        finally:
            self._done.set()

    def _finish(self) -> Any:
        if self._connection is None:
            raise TransactionFailedError("transaction is already closed")
        connection, self._connection = self._connection, None
        return connection

    def done(self) -> threading.Event:
        """Return an event that is set once the transaction has ended."""
        return self._done

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._connection is None:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()