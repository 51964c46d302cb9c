"""
Domain models — Pydantic types for the scaffolder.

All models are re-exported here for convenient access:

    from create_enfyra_be.core.models import ScaffoldConfig, ProbeResult
"""

from create_enfyra_be.core.models.config import (
    CONNECTION_FIELDS,
    DEFAULT_DB_PORTS,
    DEFAULT_POOL_SETTINGS,
    ScaffoldConfig,
)
from create_enfyra_be.core.models.connection import (
    ConnectionSpec,
    MongoSpec,
    MySQLSpec,
    PostgresSpec,
    RedisSpec,
    cache_spec_for,
    database_spec_for,
)
from create_enfyra_be.core.models.results import (
    CapacityResult,
    ProbeResult,
    ValidationReport,
)

__all__ = [
    # config.py
    "CONNECTION_FIELDS",
    "DEFAULT_DB_PORTS",
    "DEFAULT_POOL_SETTINGS",
    "ScaffoldConfig",
    # connection.py
    "ConnectionSpec",
    "MongoSpec",
    "MySQLSpec",
    "PostgresSpec",
    "RedisSpec",
    "cache_spec_for",
    "database_spec_for",
    # results.py
    "CapacityResult",
    "ProbeResult",
    "ValidationReport",
]
