"""Storage and health-check configuration, with a validating builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from .errors import TenantKitError

_DEFAULT_HEALTH_TIMEOUT = timedelta(seconds=5)
_DEFAULT_HEALTH_INTERVAL = timedelta(seconds=30)


@dataclass(frozen=True)
class HealthCheckConfig:
    """How long a health check may take and how often to run one.

    ``interval`` is advisory: callers use it to schedule checks.
    """

    timeout: timedelta = _DEFAULT_HEALTH_TIMEOUT
    interval: timedelta = _DEFAULT_HEALTH_INTERVAL


def default_health_check_config() -> HealthCheckConfig:
    """Return the general-purpose health-check settings (5s / 30s)."""
    return HealthCheckConfig(
        timeout=_DEFAULT_HEALTH_TIMEOUT, interval=_DEFAULT_HEALTH_INTERVAL
    )


def fast_health_check_config() -> HealthCheckConfig:
    """Return aggressive settings for rapid failure detection (1s / 5s)."""
    return HealthCheckConfig(timeout=timedelta(seconds=1), interval=timedelta(seconds=5))


def relaxed_health_check_config() -> HealthCheckConfig:
    """Return conservative settings that put less load on the database (10s / 60s)."""
    return HealthCheckConfig(
        timeout=timedelta(seconds=10), interval=timedelta(seconds=60)
    )


def custom_health_check_config(
    timeout: timedelta, interval: timedelta
) -> HealthCheckConfig:
    """Return settings with the given values; non-positive ones fall back to defaults."""
    if timeout <= timedelta(0):
        timeout = _DEFAULT_HEALTH_TIMEOUT
    if interval <= timedelta(0):
        interval = _DEFAULT_HEALTH_INTERVAL
    return HealthCheckConfig(timeout=timeout, interval=interval)


class ConfigValidationError(TenantKitError, ValueError):
    """Raised when a storage configuration breaks one or more rules."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = tuple(errors)
        super().__init__(
            "storage config validation failed: " + "; ".join(self.errors)
        )


@dataclass
class StorageConfig:
    """Connection and query settings for a storage adapter."""

    max_open_connections: int = 25
    max_idle_connections: int = 5
    conn_max_lifetime: timedelta = timedelta(hours=1)
    conn_max_idle_time: timedelta = timedelta(minutes=10)
    query_timeout: timedelta = timedelta(seconds=30)
    health_check: HealthCheckConfig = field(default_factory=default_health_check_config)


def _describe(duration: timedelta) -> str:
    return f"{duration.total_seconds():g}s"


class StorageConfigBuilder:
    """Fluent builder for :class:`StorageConfig`.

    Setters never raise; rule violations are collected and reported by
    :meth:`build_with_validation`.
    """

    def __init__(self) -> None:
        self._config = StorageConfig()
        self._errors: list[str] = []

    def with_max_open_connections(self, n: int) -> StorageConfigBuilder:
        if n <= 0:
            self._errors.append(f"max_open_connections must be > 0, got {n}")
        self._config.max_open_connections = n
        return self

    def with_max_idle_connections(self, n: int) -> StorageConfigBuilder:
        if n < 0:
            self._errors.append(f"max_idle_connections must be >= 0, got {n}")
        self._config.max_idle_connections = n
        return self

    def with_conn_max_lifetime(self, d: timedelta) -> StorageConfigBuilder:
        if d <= timedelta(0):
            self._errors.append(f"conn_max_lifetime must be > 0, got {_describe(d)}")
        self._config.conn_max_lifetime = d
        return self

    def with_conn_max_idle_time(self, d: timedelta) -> StorageConfigBuilder:
        if d < timedelta(0):
            self._errors.append(f"conn_max_idle_time must be >= 0, got {_describe(d)}")
        self._config.conn_max_idle_time = d
        return self

    def with_query_timeout(self, d: timedelta) -> StorageConfigBuilder:
        if d <= timedelta(0):
            self._errors.append(f"query_timeout must be > 0, got {_describe(d)}")
        self._config.query_timeout = d
        return self

    def with_health_check_config(
        self, hc: HealthCheckConfig | None
    ) -> StorageConfigBuilder:
        if hc is not None:
            self._config.health_check = hc
        return self

    def build_with_validation(self) -> StorageConfig:
        """Return the configuration, raising ConfigValidationError on any violation."""
        if self._errors:
            raise ConfigValidationError(self._errors)
        self._adjust_idle()
        return self._config

    def build(self) -> StorageConfig:
        """Return the configuration without reporting violations."""
        self._adjust_idle()
        return self._config

    def _adjust_idle(self) -> None:
        config = self._config
        if config.max_idle_connections > config.max_open_connections:
            config.max_idle_connections = int(config.max_open_connections / 2)


def default_config() -> StorageConfig:
    """Return a storage configuration with the default settings."""
    return StorageConfigBuilder().build()