"""
create-enfyra-be — CLI entrypoint.

Usage:
    create-enfyra-be [PROJECT_NAME]
    create-enfyra-be my-app --skip-prompts --config enfyra.yml
    python -m create_enfyra_be.main --help
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click

from create_enfyra_be import __version__
from create_enfyra_be.core.config.loader import ConfigError, build_config, load_defaults
from create_enfyra_be.core.errors import RuntimeCheckError, SetupError
from create_enfyra_be.core.models.config import ScaffoldConfig
from create_enfyra_be.core.observability.logging_config import resolve_level, setup_logging
from create_enfyra_be.core.services.connection_validator import validate_all
from create_enfyra_be.core.services.package_managers import (
    DetectedManager,
    check_node_version,
    require_package_managers,
)
from create_enfyra_be.core.services.project_setup import run_pipeline
from create_enfyra_be.core.services.prompts import (
    DEFAULT_PROJECT_NAME,
    PREFERRED_MANAGER,
    collect_config,
    confirm_creation,
)
from create_enfyra_be.core.services.retry import run_validation_loop
from create_enfyra_be.core.services.validators import validate_config
from create_enfyra_be.ui.cli import render

logger = logging.getLogger(__name__)


def _config_from_defaults(
    defaults: dict[str, Any],
    project_name: str | None,
    managers: list[DetectedManager],
    cwd: Path,
) -> ScaffoldConfig:
    """Build the record without prompting; exits 1 on any invalid field."""
    values = dict(defaults)
    values["project_name"] = project_name or values.get("project_name") or DEFAULT_PROJECT_NAME

    available = [m.name for m in managers]
    requested = values.get("package_manager")
    if requested is None:
        values["package_manager"] = (
            PREFERRED_MANAGER if PREFERRED_MANAGER in available else available[0]
        )
    elif requested not in available:
        click.secho(
            f"❌ Package manager '{requested}' is not available "
            f"(detected: {', '.join(available)})",
            fg="red",
        )
        sys.exit(1)

    try:
        config = build_config(values)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    errors = validate_config(config, {"cwd": cwd})
    if errors:
        click.secho("❌ Invalid configuration:", fg="red")
        for field, message in errors:
            click.secho(f"   • {field}: {message}", fg="red")
        sys.exit(1)
    return config


@click.command()
@click.version_option(version=__version__, prog_name="create-enfyra-be")
@click.argument("project_name", required=False)
@click.option(
    "--skip-prompts",
    is_flag=True,
    help="Skip interactive prompts and use defaults (plus --config values).",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to an enfyra.yml of default values (default: auto-detect).",
)
@click.option("--template", default=None, help="Git URL of the project template.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    project_name: str | None,
    skip_prompts: bool,
    config_path: str | None,
    template: str | None,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Create a new Enfyra backend application."""
    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        quiet_third_party=not debug,
    )

    render.banner()

    # ── Host preconditions ──────────────────────────────────────
    try:
        node_version = check_node_version()
        managers = require_package_managers()
    except RuntimeCheckError as e:
        render.show_runtime_error(e)
        sys.exit(1)
    logger.info("Node.js %s", node_version)
    render.show_managers(managers)

    try:
        defaults = load_defaults(Path(config_path) if config_path else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    if template:
        defaults["template_repo"] = template

    cwd = Path.cwd()

    # ── Configuration + connectivity ────────────────────────────
    if skip_prompts:
        config = _config_from_defaults(defaults, project_name, managers, cwd)
        report = validate_all(config)
        render.show_report(report)
        if not report.all_passed:
            click.secho("❌ Connection check failed", fg="red")
            sys.exit(1)
    else:
        initial = collect_config(defaults, project_name, managers, cwd)
        validated = run_validation_loop(
            initial, validate=validate_all, on_report=render.show_report,
        )
        if validated is None:
            click.secho("\n❌ Installation cancelled", fg="red")
            return
        config = validated

        render.show_summary(config)
        if not confirm_creation():
            click.secho("\n❌ Installation cancelled", fg="red")
            return

    # ── Provisioning ────────────────────────────────────────────
    try:
        run_pipeline(
            config,
            cwd=cwd,
            alternatives=[m.name for m in managers],
            on_stage=lambda stage: render.show_stage(stage.name),
        )
    except SetupError as e:
        render.show_setup_error(e)
        sys.exit(1)

    render.show_next_steps(config)


if __name__ == "__main__":
    cli()
