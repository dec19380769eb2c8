import sqlite3

import pytest

from tenantscope.context import Scope, TenantContext, from_scope
from tenantscope.errors import (
    InvalidContextError,
    InvalidTenantIDError,
    StorageNotAvailableError,
    TransactionFailedError,
)
from tenantscope.tenant_db import (
    SKIP_TENANT_KEY,
    TenantDB,
    TenantDBConfig,
    connect,
    inject_tenant_condition,
    inject_tenant_into_insert,
    skip_tenant,
    tenant_id_from,
    with_tenant,
)

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    tenant_id TEXT NOT NULL
);
CREATE INDEX idx_users_tenant_id ON users(tenant_id);
"""

INSERT_USER = "INSERT INTO users (name, email) VALUES (?, ?)"


def tenant_scope(tenant_id):
    return TenantContext(tenant_id, "user1", "req1").attach(Scope())


@pytest.fixture
def memory_db():
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def users_db():
    tdb = connect(":memory:", None)
    tdb.connection.executescript(SCHEMA)
    yield tdb
    tdb.close()


def names(rows):
    return [row["name"] for row in rows]


def test_new_uses_default_column(memory_db):
    tdb = TenantDB(memory_db, None)
    assert tdb.tenant_column == "tenant_id"


def test_new_with_config(memory_db):
    cfg = TenantDBConfig(tenant_column="org_id", skip_tables=("migrations", "system_config"))
    tdb = TenantDB(memory_db, cfg)
    assert tdb.tenant_column == "org_id"
    assert "migrations" in tdb.skip_tables
    assert "system_config" in tdb.skip_tables


def test_empty_column_falls_back_to_default(memory_db):
    tdb = TenantDB(memory_db, TenantDBConfig(tenant_column=""))
    assert tdb.tenant_column == "tenant_id"


def test_connect_and_ping():
    tdb = connect(":memory:", None)
    try:
        assert tdb.query(skip_tenant(Scope()), "SELECT 1") == [(1,)]
    finally:
        tdb.close()


@pytest.mark.parametrize("scope", [None, Scope()])
def test_tenant_id_from_missing(scope):
    with pytest.raises(InvalidContextError):
        tenant_id_from(scope)


def test_tenant_id_from_valid():
    assert tenant_id_from(tenant_scope("t123")) == "t123"


@pytest.mark.parametrize(
    "scope, query, expected",
    [
        (skip_tenant(Scope()), "SELECT * FROM users", True),
        (Scope(), "SELECT * FROM migrations", True),
        (Scope(), "INSERT INTO system_config VALUES (?)", True),
        (Scope(), "SELECT * FROM users", False),
    ],
)
def test_should_skip(memory_db, scope, query, expected):
    tdb = TenantDB(memory_db, TenantDBConfig(skip_tables=("migrations", "system_config")))
    assert tdb.should_skip(scope, query) is expected


@pytest.mark.parametrize(
    "query, expected_query, expected_position",
    [
        ("SELECT * FROM users", "SELECT * FROM users WHERE tenant_id = ? ", 0),
        (
            "SELECT * FROM users WHERE active = 1",
            "SELECT * FROM users WHERE tenant_id = ? AND active = 1",
            0,
        ),
        (
            "SELECT * FROM users ORDER BY name",
            "SELECT * FROM users  WHERE tenant_id = ? ORDER BY name",
            0,
        ),
        (
            "SELECT * FROM users LIMIT 10",
            "SELECT * FROM users  WHERE tenant_id = ? LIMIT 10",
            0,
        ),
    ],
)
def test_inject_tenant_condition(query, expected_query, expected_position):
    assert inject_tenant_condition(query, "tenant_id") == (expected_query, expected_position)


def test_inject_tenant_condition_counts_placeholders_before_where():
    query, position = inject_tenant_condition(
        "UPDATE users SET email = ? WHERE name = ?", "tenant_id"
    )
    assert query == "UPDATE users SET email = ? WHERE tenant_id = ? AND name = ?"
    assert position == 1


@pytest.mark.parametrize(
    "query, expected",
    [
        (
            "INSERT INTO users (name, email) VALUES (?, ?)",
            "INSERT INTO users (name, email, tenant_id) VALUES (?, ?, ?)",
        ),
        (
            "INSERT INTO users (name) VALUES (?)",
            "INSERT INTO users (name, tenant_id) VALUES (?, ?)",
        ),
    ],
)
def test_inject_tenant_into_insert(query, expected):
    assert inject_tenant_into_insert(query, "tenant_id") == expected


def test_inject_tenant_into_insert_leaves_unknown_shape():
    query = "INSERT INTO system_config VALUES (?)"
    assert inject_tenant_into_insert(query, "tenant_id") == query


def test_without_tenant(memory_db):
    tdb = TenantDB(memory_db, None)
    no_tenant = tdb.without_tenant()
    assert no_tenant.skip_tables == frozenset({"*"})
    assert tdb.skip_tables == frozenset()
    assert no_tenant.should_skip(Scope(), "SELECT name FROM users") is False


def test_skip_tenant_sets_flag():
    assert skip_tenant(Scope()).value(SKIP_TENANT_KEY) is True


def test_with_tenant():
    scope = with_tenant(Scope(), "t123")
    assert from_scope(scope).tenant_id.value == "t123"


def test_with_tenant_invalid_id():
    with pytest.raises(InvalidTenantIDError):
        with_tenant(Scope(), "")


def test_basic_crud(users_db):
    ctx1 = tenant_scope("t1")
    ctx2 = tenant_scope("t2")

    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    users_db.execute(ctx2, INSERT_USER, "Bob", "bob@example.com")

    assert names(users_db.fetch_all(ctx1, "SELECT * FROM users")) == ["Alice"]
    assert names(users_db.fetch_all(ctx2, "SELECT * FROM users")) == ["Bob"]

    users_db.execute(
        ctx1, "UPDATE users SET email = ? WHERE name = ?", "alice.new@example.com", "Alice"
    )
    user = users_db.fetch_one(ctx1, "SELECT * FROM users WHERE name = ?", "Alice")
    assert user["email"] == "alice.new@example.com"
    assert user["tenant_id"] == "t1"

    users_db.execute(ctx1, "DELETE FROM users WHERE name = ?", "Alice")
    assert users_db.fetch_all(ctx1, "SELECT * FROM users") == []
    assert names(users_db.fetch_all(ctx2, "SELECT * FROM users")) == ["Bob"]


def test_update_does_not_cross_tenants(users_db):
    ctx1 = tenant_scope("t1")
    ctx2 = tenant_scope("t2")
    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    users_db.execute(ctx2, "UPDATE users SET email = ? WHERE name = ?", "x@example.com", "Alice")
    assert users_db.fetch_one(ctx1, "SELECT * FROM users")["email"] == "alice@example.com"


def test_fetch_one_without_rows_raises(users_db):
    with pytest.raises(LookupError):
        users_db.fetch_one(tenant_scope("t1"), "SELECT * FROM users")


def test_query_and_query_row(users_db):
    ctx1 = tenant_scope("t1")
    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    assert users_db.query(ctx1, "SELECT name FROM users") == [("Alice",)]
    assert users_db.query_row(ctx1, "SELECT name FROM users") == ("Alice",)
    assert users_db.query_row(tenant_scope("t2"), "SELECT name FROM users") is None


def test_query_row_without_tenant_returns_none(users_db):
    users_db.execute(tenant_scope("t1"), INSERT_USER, "Alice", "alice@example.com")
    assert users_db.query_row(Scope(), "SELECT name FROM users") is None


def test_transactions(users_db):
    ctx = tenant_scope("t1")

    tx = users_db.begin(ctx)
    tx.execute(ctx, INSERT_USER, "Alice", "alice@example.com")
    tx.commit()
    assert len(users_db.fetch_all(ctx, "SELECT * FROM users")) == 1

    tx = users_db.begin(ctx)
    tx.execute(ctx, INSERT_USER, "Bob", "bob@example.com")
    tx.rollback()
    assert names(users_db.fetch_all(ctx, "SELECT * FROM users")) == ["Alice"]


def test_transaction_uses_its_own_scope(users_db):
    ctx1 = tenant_scope("t1")
    ctx2 = tenant_scope("t2")
    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    users_db.execute(ctx2, INSERT_USER, "Bob", "bob@example.com")
    with users_db.begin(ctx1) as tx:
        assert tx.query(ctx2, "SELECT name FROM users") == [("Alice",)]
        assert names(tx.fetch_all(ctx2, "SELECT * FROM users")) == ["Alice"]


def test_transaction_context_manager_rolls_back(users_db):
    ctx = tenant_scope("t1")
    with pytest.raises(RuntimeError):
        with users_db.begin(ctx) as tx:
            tx.execute(ctx, INSERT_USER, "Alice", "alice@example.com")
            raise RuntimeError("boom")
    assert users_db.fetch_all(ctx, "SELECT * FROM users") == []


def test_transaction_context_manager_commits(users_db):
    ctx = tenant_scope("t1")
    with users_db.begin(ctx) as tx:
        tx.execute(ctx, INSERT_USER, "Alice", "alice@example.com")
    assert names(users_db.fetch_all(ctx, "SELECT * FROM users")) == ["Alice"]


def test_transaction_unusable_after_commit(users_db):
    ctx = tenant_scope("t1")
    tx = users_db.begin(ctx)
    tx.commit()
    with pytest.raises(TransactionFailedError):
        tx.execute(ctx, INSERT_USER, "Alice", "alice@example.com")
    with pytest.raises(TransactionFailedError):
        tx.rollback()


def test_transaction_without_tenant_fails(users_db):
    tx = users_db.begin(Scope())
    with pytest.raises(InvalidContextError):
        tx.execute(Scope(), INSERT_USER, "Alice", "alice@example.com")
    tx.rollback()
    assert users_db.query(skip_tenant(Scope()), "SELECT COUNT(*) FROM users") == [(0,)]


def test_skip_tables():
    tdb = connect(":memory:", TenantDBConfig(skip_tables=("migrations",)))
    try:
        tdb.connection.executescript(
            "CREATE TABLE migrations (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL);"
        )
        ctx = tenant_scope("t1")
        tdb.execute(ctx, "INSERT INTO migrations (name) VALUES (?)", "001_init")
        assert tdb.query(ctx, "SELECT COUNT(*) FROM migrations") == [(1,)]
    finally:
        tdb.close()


def test_skip_tenant_scope_sees_all(users_db):
    ctx1 = tenant_scope("t1")
    ctx2 = tenant_scope("t2")
    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    users_db.execute(ctx2, INSERT_USER, "Bob", "bob@example.com")
    rows = users_db.fetch_all(skip_tenant(ctx1), "SELECT * FROM users ORDER BY name")
    assert names(rows) == ["Alice", "Bob"]


def test_without_tenant_sees_all(users_db):
    ctx1 = tenant_scope("t1")
    ctx2 = tenant_scope("t2")
    users_db.execute(ctx1, INSERT_USER, "Alice", "alice@example.com")
    users_db.execute(ctx2, INSERT_USER, "Bob", "bob@example.com")
    rows = users_db.without_tenant().fetch_all(ctx1, "SELECT * FROM users")
    assert len(rows) == 2


def test_errors_without_tenant(users_db):
    with pytest.raises(InvalidContextError):
        users_db.execute(Scope(), INSERT_USER, "Alice", "alice@example.com")
    with pytest.raises(InvalidContextError):
        users_db.fetch_all(Scope(), "SELECT * FROM users")
    with pytest.raises(InvalidContextError):
        users_db.fetch_one(Scope(), "SELECT * FROM users WHERE id = ?", 1)


def test_named_execute(users_db):
    ctx = tenant_scope("t1")
    users_db.named_execute(
        ctx,
        "INSERT INTO users (name, email, tenant_id) VALUES (:name, :email, :tenant_id)",
        {"name": "Alice", "email": "alice@example.com", "tenant_id": "t1"},
    )
    assert names(users_db.fetch_all(ctx, "SELECT * FROM users")) == ["Alice"]


def test_named_execute_requires_tenant(users_db):
    with pytest.raises(InvalidContextError):
        users_db.named_execute(
            Scope(),
            "INSERT INTO users (name, email, tenant_id) VALUES (:name, :email, :tenant_id)",
            {"name": "Alice", "email": "alice@example.com", "tenant_id": "t1"},
        )


def test_closed_database_raises(users_db):
    users_db.close()
    users_db.close()
    with pytest.raises(StorageNotAvailableError):
        users_db.query(tenant_scope("t1"), "SELECT * FROM users")