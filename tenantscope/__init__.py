"""Tenant isolation for SQL access: tenant ids, request scopes, query rewriting and tenant-aware connection wrappers."""

__version__ = "1.0.0"

__all__ = [
    "config",
    "context",
    "enforcer",
    "errors",
    "storage",
    "tenant_db",
    "tenant_id",
    "transaction",
]