# tenantscope

`tenantscope` sits between your code and a DB-API connection, such as one
from `sqlite3`. It rewrites each statement so that it only touches the rows
of the tenant named in the current request scope.

It has no dependencies outside the standard library.

## Contents

- **`tenantscope.tenant_id`**: `TenantID` and `validate_tenant_id`. A
  tenant ID is 1 to 255 characters long and may hold letters, digits, `-`,
  `_` and `.`. It is stored in lower case, so `"My-Tenant"` and
  `"my-tenant"` compare equal.
- **`tenantscope.context`**: `Scope` and `TenantContext`.
  - `Scope` is an immutable bag of request values. `with_value` returns a
    new scope and `value` reads a value back.
  - `TenantContext` holds the tenant, user and request ids together with a
    timestamp.
  - `TenantContext.attach(scope)` puts the context into a scope, and
    `from_scope(scope)` reads it back out.
- **`tenantscope.enforcer`**: `Enforcer` injects a literal
  `tenant_id = '<tenant>'` filter into `SELECT`, `UPDATE` and `DELETE`
  statements. It leaves `INSERT` and other statements unchanged. It refuses
  empty queries and any query containing `DROP TABLE`, `DROP DATABASE`,
  `TRUNCATE` or `ALTER TABLE`.
- **`tenantscope.config`**: `HealthCheckConfig` and `StorageConfig`. It
  also holds `StorageConfigBuilder` and the presets
  `default_health_check_config`, `fast_health_check_config`,
  `relaxed_health_check_config`, `custom_health_check_config` and
  `default_config`.
- **`tenantscope.storage`** and **`tenantscope.transaction`**: `Storage`
  and `Transaction` run statements through an `Enforcer` on a connection.
- **`tenantscope.tenant_db`**: `TenantDB` and `TenantTx` are a wrapper for
  `?` placeholders.
  - The tenant id is bound as a parameter, and `INSERT` statements gain the
    tenant column and value.
  - Enforcement can be bypassed by skip tables, `skip_tenant` or
    `TenantDB.without_tenant`.
- **`tenantscope.errors`**: every error derives from `TenantKitError`.

## Scoping a request

```python
from tenantscope.context import Scope, TenantContext, from_scope
from tenantscope.tenant_db import with_tenant

scope = with_tenant(Scope(), "acme-corp")
print(from_scope(scope).tenant_id)   # acme-corp

ctx = TenantContext("Acme-Corp", "user-123", "req-456")
scope = ctx.attach(Scope())
from_scope(scope).user_id            # "user-123"
```

Errors:

- `with_tenant` and `TenantContext` raise `InvalidTenantIDError` for a
  malformed tenant id.
- `TenantContext` raises `MissingUserIDError` if the user id is empty, and
  `MissingRequestIDError` if the request id is empty.
- `from_scope` raises `InvalidContextError` when the scope carries no
  tenant context.

## Tenant-aware queries with placeholders

```python
import sqlite3

from tenantscope.context import Scope
from tenantscope.tenant_db import TenantDB, TenantDBConfig, skip_tenant, with_tenant

connection = sqlite3.connect(":memory:")
connection.execute(
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT, tenant_id TEXT)"
)

db = TenantDB(connection, TenantDBConfig(tenant_column="tenant_id", skip_tables=("migrations",)))

acme = with_tenant(Scope(), "acme-corp")
globex = with_tenant(Scope(), "globex-inc")

db.execute(acme, "INSERT INTO users (name, email) VALUES (?, ?)", "Alice", "alice@example.com")
db.execute(globex, "INSERT INTO users (name, email) VALUES (?, ?)", "Charlie", "charlie@example.com")

db.fetch_all(acme, "SELECT name FROM users")               # [{'name': 'Alice'}]
db.fetch_all(skip_tenant(acme), "SELECT name FROM users")  # both users
db.without_tenant().fetch_all(acme, "SELECT * FROM users") # both users
```

Reading rows:

- `query` returns plain rows and `fetch_all` returns column-name mappings.
- `fetch_one` returns one mapping and raises `LookupError` when there is no
  row.
- `query_row` returns the first row. It returns `None` when there is no row,
  and also when the scope carries no tenant.

Skipping enforcement:

- A query is not filtered if its text contains the name of a skip table,
  compared without regard to case.
- `without_tenant()` returns a copy whose only skip "table" is `*`. It
  bypasses enforcement only for queries whose text contains `*`.

Writes:

- Outside a transaction, writes are committed at once.
- `named_execute` runs a statement with named parameters and does not
  inject the tenant column. The parameters must carry it, but the scope
  must still hold a tenant.

Transactions filter statements in the same way. The tenant always comes
from the scope given to `begin`:

```python
with db.begin(acme) as tx:
    tx.execute(acme, "UPDATE users SET email = ? WHERE name = ?", "alice@example.com", "Alice")
```

The transaction commits when the block ends normally. If the block raises,
it rolls back.

`connect(database, config)` opens an SQLite database with `sqlite3` and
wraps it in a `TenantDB`.

## Rewriting queries directly

```python
from tenantscope.enforcer import Enforcer

enforcer = Enforcer("tenant_id")
query, args = enforcer.enforce_query(acme, "SELECT * FROM users WHERE id = 1", [])
# SELECT * FROM users WHERE tenant_id = 'acme-corp' AND (id = 1)

enforcer.verify_tenant_isolation(query, "acme-corp")  # True
enforcer.supported_operations()                       # ['SELECT', 'INSERT', 'UPDATE', 'DELETE']
```

Refused queries raise `UnsafeQueryError`.

## Storage

```python
from tenantscope.storage import Storage

storage = Storage(connection)
storage.query(acme, "SELECT name FROM users")     # rows filtered to acme-corp
storage.execute(acme, "DELETE FROM users WHERE name = 'Alice'")
storage.health()                                  # runs SELECT 1

with storage.begin(acme) as tx:
    tx.query_row(acme, "SELECT name FROM users")
```

How `Storage` behaves:

- It always filters on the column `tenant_id`.
- `execute` commits after each statement.
- `health` raises `StorageNotAvailableError` if the connection is closed or
  the ping fails.
- `close` is safe to call twice.

How a `Transaction` behaves:

- `begin` and `close` always raise `TransactionFailedError`.
- `commit` and `rollback` end it. After that, statements and `health` raise
  `TransactionFailedError`.
- `done()` returns a `threading.Event`, which is set once the transaction
  has ended.

Query timeouts from the configuration apply only to connections that offer
`set_progress_handler`, as `sqlite3` connections do. On other connections
statements run without a deadline.

## Configuration

```python
from datetime import timedelta

from tenantscope.config import StorageConfigBuilder, fast_health_check_config

config = (
    StorageConfigBuilder()
    .with_max_open_connections(50)
    .with_max_idle_connections(10)
    .with_query_timeout(timedelta(seconds=60))
    .with_health_check_config(fast_health_check_config())
    .build_with_validation()
)
```

Defaults:

- 25 open connections and 5 idle connections.
- A connection lifetime of 1 hour and an idle time of 10 minutes.
- A query timeout of 30 seconds.
- A health check with a 5 second timeout and a 30 second interval.

The health-check presets are:

| Preset                        | Timeout | Interval |
|-------------------------------|---------|----------|
| `fast_health_check_config`    | 1s      | 5s       |
| `default_health_check_config` | 5s      | 30s      |
| `relaxed_health_check_config` | 10s     | 60s      |

`custom_health_check_config` replaces non-positive values with the
defaults.

How the builder handles settings:

- The setters never raise.
- `build_with_validation` raises one `ConfigValidationError` that lists
  every rule broken. The list is also available as `errors`.
- `build` returns the values as given.
- Both methods lower the idle connection count to half the open count when
  it is larger than the open count.

## What it does not do

- No connection pooling. `max_open_connections`, `max_idle_connections`,
  `conn_max_lifetime` and `conn_max_idle_time` are stored in `StorageConfig`
  but not applied to any connection. The health-check `interval` is
  advisory only; nothing schedules checks.
- `Storage` and `Enforcer` do not add the tenant column to `INSERT`
  statements. Only `TenantDB` and `TenantTx` do that.
- The rewriting is text-based, not a SQL parser. For example, the first
  occurrence of `where` anywhere in a query is taken as the WHERE clause.
- `QuotaExceededError`, `RateLimitExceededError` and the cache errors are
  defined for callers to use. The package itself enforces no quotas or
  rate limits and has no cache.
- There is no command-line tool and no server.