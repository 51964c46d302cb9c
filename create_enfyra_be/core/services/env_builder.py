"""
Config file rendering — ScaffoldConfig → ``.env`` text.

Pure: no filesystem access.  The provisioning pipeline writes the
result to ``ENV_FILENAME`` in the project root.
"""

from __future__ import annotations

import secrets
from urllib.parse import quote

from create_enfyra_be.core.models.config import ScaffoldConfig

ENV_FILENAME = ".env"

# Fixed auth settings
SALT_ROUNDS = 10
ACCESS_TOKEN_EXP = "15m"
REFRESH_TOKEN_NO_REMEMBER_EXP = "1d"
REFRESH_TOKEN_REMEMBER_EXP = "7d"


def _mongo_uri(config: ScaffoldConfig) -> str:
    if config.db_uri:
        return config.db_uri
    user = quote(config.db_username, safe="")
    password = quote(config.db_password, safe="")
    credentials = f"{user}:{password}@" if user else ""
    return (
        f"mongodb://{credentials}{config.db_host}:{config.db_port}/"
        f"{config.db_name}?authSource={config.mongo_auth_source}"
    )


def _db_lines(config: ScaffoldConfig) -> list[str]:
    lines = ["#DB SETTING", f"DB_TYPE={config.db_type}"]

    if config.db_type == "mongodb":
        lines.append(f"MONGO_URI={_mongo_uri(config)}")
        return lines

    if config.db_uri:
        lines.append(f"DB_URI={config.db_uri}")
    else:
        lines += [
            f"DB_HOST={config.db_host}",
            f"DB_PORT={config.db_port}",
            f"DB_USERNAME={config.db_username}",
            f"DB_PASSWORD={config.db_password}",
            f"DB_NAME={config.db_name}",
        ]
    if config.db_replica_host:
        lines += [
            f"DB_REPLICA_HOST={config.db_replica_host}",
            f"DB_REPLICA_PORT={config.db_replica_port or config.db_port}",
        ]
    return lines


def _pool_lines(config: ScaffoldConfig) -> list[str]:
    pool = config.pool_settings()
    return [
        "#DATABASE CONNECTION POOL SETTINGS",
        f"DB_POOL_SIZE={pool['db_pool_size']}",
        f"DB_CONNECTION_LIMIT={pool['db_connection_limit']}",
        f"DB_ACQUIRE_TIMEOUT={pool['db_acquire_timeout']}",
        f"DB_IDLE_TIMEOUT={pool['db_idle_timeout']}",
    ]


def render_env(config: ScaffoldConfig, secret_key: str | None = None) -> str:
    """Render the generated project's ``.env`` content.

    Args:
        config: Validated configuration record.
        secret_key: Auth secret to embed. A fresh 32-byte hex secret is
            generated when omitted.

    Returns:
        The full file text, newline terminated.
    """
    secret = secret_key or secrets.token_hex(32)

    sections = [
        _db_lines(config),
        _pool_lines(config),
        [
            "#REDIS SETTING",
            f"REDIS_URI={config.redis_uri}",
            f"DEFAULT_TTL={config.redis_ttl}",
        ],
        [
            "#APP SETTING",
            f"NODE_NAME={config.node_name}",
            f"PORT={config.app_port}",
            f"DEFAULT_HANDLER_TIMEOUT={config.handler_timeout}",
            f"DEFAULT_PREHOOK_TIMEOUT={config.prehook_timeout}",
            f"DEFAULT_AFTERHOOK_TIMEOUT={config.afterhook_timeout}",
            f"PACKAGE_MANAGER={config.package_manager}",
            f"BACKEND_URL={config.backend_url}",
            f"NODE_ENV={config.node_env}",
        ],
        [
            "#AUTH SETTING",
            f"SECRET_KEY={secret}",
            f"SALT_ROUNDS={SALT_ROUNDS}",
            f"ACCESS_TOKEN_EXP={ACCESS_TOKEN_EXP}",
            f"REFRESH_TOKEN_NO_REMEMBER_EXP={REFRESH_TOKEN_NO_REMEMBER_EXP}",
            f"REFRESH_TOKEN_REMEMBER_EXP={REFRESH_TOKEN_REMEMBER_EXP}",
        ],
    ]
    return "\n\n".join("\n".join(lines) for lines in sections) + "\n"

