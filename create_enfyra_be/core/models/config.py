"""
Scaffold configuration — the record collected from the operator.

The record is an immutable snapshot.  The retry loop never edits a
field in place: it builds a partial update and calls ``with_updates``,
which re-validates the merged record as a whole.
"""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DbType = Literal["mysql", "mariadb", "postgres", "mongodb"]
PackageManagerName = Literal["npm", "yarn", "pnpm", "bun"]
NodeEnv = Literal["development", "production", "test"]

DB_TYPES: tuple[str, ...] = ("mysql", "mariadb", "postgres", "mongodb")
SQL_DB_TYPES: frozenset[str] = frozenset({"mysql", "mariadb", "postgres"})

DEFAULT_DB_PORTS: dict[str, int] = {
    "mysql": 3306,
    "mariadb": 3306,
    "postgres": 5432,
    "mongodb": 27017,
}

# Written to the config file whenever pool tuning is not enabled
DEFAULT_POOL_SETTINGS: dict[str, int] = {
    "db_pool_size": 100,
    "db_connection_limit": 100,
    "db_acquire_timeout": 60000,
    "db_idle_timeout": 30000,
}

DEFAULT_HOOK_TIMEOUT_MS = 20000

DEFAULT_TEMPLATE_REPO = os.environ.get(
    "ENFYRA_TEMPLATE_REPO", "https://github.com/dothinh115/enfyra_be.git"
)

# Fields re-collected by the retry loop, per failed component
CONNECTION_FIELDS: dict[str, tuple[str, ...]] = {
    "database": (
        "db_uri",
        "db_host",
        "db_port",
        "db_username",
        "db_password",
        "db_name",
        "mongo_auth_source",
        "db_replica_host",
        "db_replica_port",
        "configure_pool",
        "db_pool_size",
        "db_connection_limit",
        "db_acquire_timeout",
        "db_idle_timeout",
    ),
    "cache": ("redis_uri",),
}


class ScaffoldConfig(BaseModel):
    """Everything needed to generate one project."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Project ─────────────────────────────────────────────────
    project_name: str
    package_manager: PackageManagerName = "npm"
    node_name: str = ""
    template_repo: str = DEFAULT_TEMPLATE_REPO

    # ── Primary store ───────────────────────────────────────────
    db_type: DbType = "mysql"
    db_uri: str | None = None
    db_host: str = "localhost"
    db_port: int = Field(default=3306, ge=1, le=65535)
    db_username: str = "root"
    db_password: str = ""
    db_name: str = "enfyra"
    mongo_auth_source: str = "admin"
    db_replica_host: str | None = None
    db_replica_port: int | None = Field(default=None, ge=1, le=65535)

    # ── Pool tuning (advanced) ──────────────────────────────────
    configure_pool: bool = False
    db_pool_size: int = Field(default=100, ge=1)
    db_connection_limit: int = Field(default=100, ge=1)
    db_acquire_timeout: int = Field(default=60000, ge=0)
    db_idle_timeout: int = Field(default=30000, ge=0)

    # ── Cache ───────────────────────────────────────────────────
    redis_uri: str = "redis://localhost:6379"
    redis_ttl: int = Field(default=5, ge=0)

    # ── App runtime ─────────────────────────────────────────────
    app_port: int = Field(default=1105, ge=1, le=65535)
    handler_timeout: int = Field(default=DEFAULT_HOOK_TIMEOUT_MS, ge=100)
    prehook_timeout: int = Field(default=DEFAULT_HOOK_TIMEOUT_MS, ge=100)
    afterhook_timeout: int = Field(default=DEFAULT_HOOK_TIMEOUT_MS, ge=100)
    backend_url: str = ""
    node_env: NodeEnv = "development"

    # ── Admin account (seed data) ───────────────────────────────
    admin_email: str = "admin@enfyra.io"
    admin_password: str = Field(default="1234", min_length=4)

    @model_validator(mode="before")
    @classmethod
    def _fill_derived(cls, data: Any) -> Any:
        """Derive the port, node name and backend URL when left blank."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("db_port") is None:
            data["db_port"] = DEFAULT_DB_PORTS.get(data.get("db_type", "mysql"), 3306)
        if not data.get("node_name"):
            data["node_name"] = data.get("project_name", "")
        if not data.get("backend_url"):
            data["backend_url"] = f"http://localhost:{data.get('app_port', 1105)}"
        return data

    @property
    def is_sql(self) -> bool:
        return self.db_type in SQL_DB_TYPES

    def pool_settings(self) -> dict[str, int]:
        """Pool values to write: the operator's when tuning is on, else defaults."""
        if not self.configure_pool:
            return dict(DEFAULT_POOL_SETTINGS)
        return {key: getattr(self, key) for key in DEFAULT_POOL_SETTINGS}

    def with_updates(self, changes: dict[str, Any]) -> ScaffoldConfig:
        """Return a new, re-validated record with ``changes`` applied."""
        merged = self.model_dump()
        merged.update(changes)
        return type(self).model_validate(merged)
