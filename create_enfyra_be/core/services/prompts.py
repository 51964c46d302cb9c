"""
Interactive prompts — collect a ScaffoldConfig from the operator.

The only service module that talks to the terminal.  Every free-text
answer is checked with ``validators.validate`` and re-asked until it
passes, so the record handed to pydantic is already well-formed.

Collectors return plain ``dict`` partial updates; callers merge them
into a snapshot with ``ScaffoldConfig.with_updates``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click

from create_enfyra_be.core.models.config import (
    DB_TYPES,
    DEFAULT_DB_PORTS,
    DEFAULT_HOOK_TIMEOUT_MS,
    DEFAULT_POOL_SETTINGS,
    ScaffoldConfig,
)
from create_enfyra_be.core.services.package_managers import DetectedManager
from create_enfyra_be.core.services.validators import validate

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "my-enfyra-app"
PREFERRED_MANAGER = "yarn"

_DB_LABELS = {
    "mysql": "MySQL",
    "mariadb": "MariaDB",
    "postgres": "PostgreSQL",
    "mongodb": "MongoDB",
}

RETRY = "retry"
ABANDON = "abandon"


# ── Primitives ──────────────────────────────────────────────────


def ask(
    message: str,
    field: str,
    *,
    default: Any = None,
    context: dict | None = None,
    hide_input: bool = False,
) -> str:
    """Prompt until ``field``'s validator accepts the answer."""
    while True:
        value = click.prompt(
            message,
            default="" if default is None else str(default),
            show_default=not hide_input,
            hide_input=hide_input,
        )
        outcome = validate(field, value, context)
        if outcome is True:
            return value.strip() if not hide_input else value
        click.secho(f"   ✗ {outcome}", fg="red")


def ask_int(message: str, field: str, *, default: Any = None) -> int:
    return int(ask(message, field, default=default))


def _default(defaults: dict, field: str, fallback: Any = None) -> Any:
    value = defaults.get(field)
    return fallback if value is None else value


# ── Sections ────────────────────────────────────────────────────


def collect_project_fields(
    defaults: dict,
    project_name_arg: str | None,
    managers: list[DetectedManager],
    cwd: Path,
) -> dict[str, Any]:
    """Project name (unless a valid one was passed), package manager, node name."""
    answers: dict[str, Any] = {}
    context = {"cwd": cwd}

    name = project_name_arg
    if name is not None:
        outcome = validate("project_name", name, context)
        if outcome is not True:
            click.secho(f"❌ {outcome}", fg="red")
            name = None
    if name is None:
        name = ask(
            "Project name",
            "project_name",
            default=_default(defaults, "project_name", DEFAULT_PROJECT_NAME),
            context=context,
        )
    answers["project_name"] = name

    available = [m.name for m in managers]
    preferred = _default(defaults, "package_manager")
    if preferred not in available:
        preferred = PREFERRED_MANAGER if PREFERRED_MANAGER in available else available[0]
    if len(available) == 1:
        answers["package_manager"] = available[0]
    else:
        answers["package_manager"] = click.prompt(
            "Package manager (" + ", ".join(m.label for m in managers) + ")",
            type=click.Choice(available),
            default=preferred,
        )

    answers["node_name"] = ask(
        "Node name (for clustering/identification)",
        "node_name",
        default=_default(defaults, "node_name", name),
    )
    return answers


def collect_database_fields(current: dict, db_type: str) -> dict[str, Any]:
    """Connection fields for ``db_type``: a URI, or host/port/credentials/name."""
    label = _DB_LABELS.get(db_type, db_type)
    answers: dict[str, Any] = {}

    uri = ask(
        f"{label} connection URI (leave empty to enter host/port)",
        "db_uri",
        default=_default(current, "db_uri", ""),
    )
    answers["db_uri"] = uri or None

    if not uri:
        answers["db_host"] = ask(
            "Database host", "db_host", default=_default(current, "db_host", "localhost"),
        )
        answers["db_port"] = ask_int(
            "Database port",
            "db_port",
            default=_default(current, "db_port", DEFAULT_DB_PORTS[db_type]),
        )
        answers["db_username"] = ask(
            "Database username",
            "db_username",
            default=_default(current, "db_username", "root"),
        )
        answers["db_password"] = ask(
            "Database password (can be empty)",
            "db_password",
            default=_default(current, "db_password", ""),
            hide_input=True,
        )
        answers["db_name"] = ask(
            "Database name", "db_name", default=_default(current, "db_name", "enfyra"),
        )

    if db_type == "mongodb":
        if not uri:
            answers["mongo_auth_source"] = ask(
                "Auth source",
                "mongo_auth_source",
                default=_default(current, "mongo_auth_source", "admin"),
            )
        answers["db_replica_host"] = None
        answers["db_replica_port"] = None
        return answers

    has_replica = bool(current.get("db_replica_host"))
    if click.confirm("Configure a read replica?", default=has_replica):
        answers["db_replica_host"] = ask(
            "Replica host",
            "db_host",
            default=_default(current, "db_replica_host", "localhost"),
        )
        replica_port = ask(
            "Replica port (empty = same as primary)",
            "db_replica_port",
            default=_default(current, "db_replica_port", ""),
        )
        answers["db_replica_port"] = int(replica_port) if replica_port else None
    else:
        answers["db_replica_host"] = None
        answers["db_replica_port"] = None
    return answers


def collect_pool_fields(current: dict) -> dict[str, Any]:
    labels = {
        "db_pool_size": "Database pool size",
        "db_connection_limit": "Connection limit",
        "db_acquire_timeout": "Acquire timeout (ms)",
        "db_idle_timeout": "Idle timeout (ms)",
    }
    answers: dict[str, Any] = {"configure_pool": True}
    for field, label in labels.items():
        answers[field] = ask_int(
            label, field, default=_default(current, field, DEFAULT_POOL_SETTINGS[field]),
        )
    return answers


def collect_cache_fields(current: dict) -> dict[str, Any]:
    return {
        "redis_uri": ask(
            "Redis URI",
            "redis_uri",
            default=_default(current, "redis_uri", "redis://localhost:6379"),
        ),
    }


def collect_app_fields(defaults: dict) -> dict[str, Any]:
    answers: dict[str, Any] = {}
    answers["redis_ttl"] = ask_int(
        "Default cache TTL (seconds)", "redis_ttl", default=_default(defaults, "redis_ttl", 5),
    )
    answers["app_port"] = ask_int(
        "Application port", "app_port", default=_default(defaults, "app_port", 1105),
    )
    answers["backend_url"] = ask(
        "Public backend URL",
        "backend_url",
        default=_default(defaults, "backend_url", f"http://localhost:{answers['app_port']}"),
    )
    answers["node_env"] = click.prompt(
        "Environment",
        type=click.Choice(["development", "production", "test"]),
        default=_default(defaults, "node_env", "development"),
    )
    return answers


def collect_advanced_fields(defaults: dict) -> dict[str, Any]:
    """Pool tuning and hook timeouts, behind one confirmation."""
    if not click.confirm(
        "Configure advanced settings?", default=bool(defaults.get("configure_pool")),
    ):
        return {"configure_pool": False}

    answers = collect_pool_fields(defaults)
    for field, label in (
        ("handler_timeout", "Handler timeout (ms)"),
        ("prehook_timeout", "Prehook timeout (ms)"),
        ("afterhook_timeout", "Afterhook timeout (ms)"),
    ):
        answers[field] = ask_int(
            label, field, default=_default(defaults, field, DEFAULT_HOOK_TIMEOUT_MS),
        )
    return answers


def collect_admin_fields(defaults: dict) -> dict[str, Any]:
    return {
        "admin_email": ask(
            "Admin email",
            "admin_email",
            default=_default(defaults, "admin_email", "admin@enfyra.io"),
        ),
        "admin_password": ask(
            "Admin password",
            "admin_password",
            default=_default(defaults, "admin_password", "1234"),
            hide_input=True,
        ),
    }


# ── Flows ───────────────────────────────────────────────────────


def collect_config(
    defaults: dict,
    project_name_arg: str | None,
    managers: list[DetectedManager],
    cwd: Path,
) -> ScaffoldConfig:
    """Run the full question sequence and build the configuration record."""
    answers: dict[str, Any] = {}
    answers.update(collect_project_fields(defaults, project_name_arg, managers, cwd))

    answers["db_type"] = click.prompt(
        "Database type",
        type=click.Choice(list(DB_TYPES)),
        default=_default(defaults, "db_type", "mysql"),
    )
    answers.update(collect_database_fields(defaults, answers["db_type"]))
    answers.update(collect_cache_fields(defaults))
    answers.update(collect_app_fields(defaults))
    answers.update(collect_advanced_fields(defaults))
    answers.update(collect_admin_fields(defaults))

    if defaults.get("template_repo"):
        answers["template_repo"] = defaults["template_repo"]

    logger.debug("Collected fields: %s", sorted(answers))
    return ScaffoldConfig.model_validate(answers)


def recollect_connection_fields(
    config: ScaffoldConfig, components: list[str],
) -> dict[str, Any]:
    """Re-ask only the fields behind the failed ``components``."""
    current = config.model_dump()
    changes: dict[str, Any] = {}
    if "database" in components:
        click.secho(f"\n{_DB_LABELS[config.db_type]} connection", bold=True)
        changes.update(collect_database_fields(current, config.db_type))
        if config.configure_pool:
            changes.update(collect_pool_fields(current))
    if "cache" in components:
        click.secho("\nRedis connection", bold=True)
        changes.update(collect_cache_fields(current))
    return changes


def choose_retry_action() -> str:
    return click.prompt(
        "Update connection settings and retry, or abandon?",
        type=click.Choice([RETRY, ABANDON]),
        default=RETRY,
    )


def confirm_creation() -> bool:
    return click.confirm("Create project with this configuration?", default=True)
