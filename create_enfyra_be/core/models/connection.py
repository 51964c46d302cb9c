"""
Connection specs — what a probe needs to dial one backend.

``ConnectionSpec`` is a tagged union over the primary-store kinds; the
``kind`` tag selects the probe.  Specs are rebuilt from the config
record on every validation attempt, never patched.
"""

from __future__ import annotations

from typing import Annotated, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import make_url

from create_enfyra_be.core.models.config import DEFAULT_DB_PORTS, ScaffoldConfig


class _ServerSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=1, le=65535)
    username: str = ""
    password: str = ""
    database: str = ""

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"


class _SqlSpec(_ServerSpec):
    query: dict[str, str | tuple[str, ...]] = Field(default_factory=dict)
    replica_host: str | None = None
    replica_port: int | None = Field(default=None, ge=1, le=65535)

    def replica(self) -> _SqlSpec | None:
        """Same credentials, pointed at the read replica (if any)."""
        if not self.replica_host:
            return None
        return self.model_copy(update={
            "host": self.replica_host,
            "port": self.replica_port or self.port,
            "replica_host": None,
            "replica_port": None,
        })


class MySQLSpec(_SqlSpec):
    kind: Literal["mysql", "mariadb"] = "mysql"


class PostgresSpec(_SqlSpec):
    kind: Literal["postgres"] = "postgres"


class MongoSpec(_ServerSpec):
    kind: Literal["mongodb"] = "mongodb"
    auth_source: str = "admin"
    # Dialed verbatim when set: keeps +srv lookups and options like tls
    uri: str | None = None


ConnectionSpec = Annotated[
    MySQLSpec | PostgresSpec | MongoSpec,
    Field(discriminator="kind"),
]


class RedisSpec(BaseModel):
    """Cache connection — URI based."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["redis"] = "redis"
    uri: str

    @property
    def target(self) -> str:
        parts = urlsplit(self.uri)
        try:
            port = parts.port or 6379
        except ValueError:
            return parts.netloc.rpartition("@")[2]
        return f"{parts.hostname or 'localhost'}:{port}"

    @property
    def has_password(self) -> bool:
        return bool(urlsplit(self.uri).password)


_SPEC_TYPES: dict[str, type[_ServerSpec]] = {
    "mysql": MySQLSpec,
    "mariadb": MySQLSpec,
    "postgres": PostgresSpec,
    "mongodb": MongoSpec,
}


def database_spec_for(config: ScaffoldConfig) -> MySQLSpec | PostgresSpec | MongoSpec:
    """Build the primary-store spec from the config record.

    A connection URI, when given, supersedes the discrete fields.
    """
    spec_type = _SPEC_TYPES[config.db_type]
    fields: dict = {
        "kind": config.db_type,
        "host": config.db_host,
        "port": config.db_port,
        "username": config.db_username,
        "password": config.db_password,
        "database": config.db_name,
    }

    if config.db_uri:
        url = make_url(config.db_uri)
        fields.update({
            "host": url.host or "localhost",
            "port": url.port or DEFAULT_DB_PORTS[config.db_type],
            "username": url.username or "",
            "password": url.password or "",
            "database": url.database or "",
        })
        if config.db_type != "mongodb":
            fields["query"] = dict(url.query)
        else:
            fields["uri"] = config.db_uri
            auth_source = url.query.get("authSource", config.mongo_auth_source)
            if isinstance(auth_source, tuple):
                auth_source = auth_source[0]
            fields["auth_source"] = auth_source

    if config.db_type == "mongodb":
        fields.setdefault("auth_source", config.mongo_auth_source)
    elif config.db_replica_host:
        fields["replica_host"] = config.db_replica_host
        fields["replica_port"] = config.db_replica_port

    return spec_type.model_validate(fields)


def cache_spec_for(config: ScaffoldConfig) -> RedisSpec:
    return RedisSpec(uri=config.redis_uri)
