"""
Terminal rendering for the scaffolder.

Thin display helpers over core results; nothing here decides flow.
"""

from __future__ import annotations

import click

from create_enfyra_be.core.errors import RuntimeCheckError, SetupError
from create_enfyra_be.core.models.config import ScaffoldConfig
from create_enfyra_be.core.models.results import ProbeResult, ValidationReport
from create_enfyra_be.core.services.package_managers import DetectedManager, dev_command

_STAGE_LABELS = {
    "capacity": "💾 Checking disk space",
    "directory": "📁 Creating project directory",
    "template": "📥 Fetching template",
    "manifest": "📝 Updating package.json",
    "seed": "👤 Seeding admin account",
    "config": "⚙️  Writing .env",
    "install": "📦 Installing dependencies (this may take a while)",
}

# Hint sections in display order
_HINT_TITLES = {"database": "Database", "replica": "Read replica", "cache": "Redis"}


def banner() -> None:
    click.secho("\n╔════════════════════════════════╗", fg="cyan", bold=True)
    click.secho("║   🚀 Create Enfyra Backend     ║", fg="cyan", bold=True)
    click.secho("╚════════════════════════════════╝\n", fg="cyan", bold=True)


def show_managers(managers: list[DetectedManager]) -> None:
    click.secho("Detected package managers:", dim=True)
    for m in managers:
        click.secho(f"  • {m.name} v{m.version}", dim=True)
    click.echo()


def _probe_line(result: ProbeResult, label: str) -> None:
    if result.ok:
        click.secho(f"   ✅ {label} ({result.target}) — {result.latency_ms}ms", fg="green")
    else:
        code = result.error_code.value if result.error_code else "UNKNOWN"
        click.secho(f"   ❌ {label} ({result.target}) — {code}", fg="red")
        if result.message:
            click.secho(f"      {result.message}", dim=True)


def show_report(report: ValidationReport) -> None:
    """Probe outcomes followed by remediation hints for each failure."""
    click.secho("\n🔌 Connection check:", fg="cyan", bold=True)
    _probe_line(report.database, report.database.backend)
    if report.database.replica is not None:
        _probe_line(report.database.replica, f"{report.database.backend} replica")
    _probe_line(report.cache, "redis")

    for key, title in _HINT_TITLES.items():
        hints = report.hints.get(key)
        if not hints:
            continue
        click.secho(f"\n   💡 {title}:", fg="yellow")
        for hint in hints:
            click.secho(f"      • {hint}", fg="yellow")
    click.echo()


def show_summary(config: ScaffoldConfig) -> None:
    click.secho("\n📋 Configuration:", fg="cyan", bold=True)
    database = config.db_uri or f"{config.db_host}:{config.db_port}/{config.db_name}"
    rows = [
        ("Project", config.project_name),
        ("Package manager", config.package_manager),
        ("Database", f"{config.db_type} ({database})"),
        ("Redis", config.redis_uri),
        ("App port", str(config.app_port)),
        ("Backend URL", config.backend_url),
        ("Admin", config.admin_email),
    ]
    for label, value in rows:
        click.echo(f"   {label + ':':<17} {value}")
    click.echo()


def show_stage(name: str) -> None:
    click.echo(f"{_STAGE_LABELS.get(name, name)}...")


def show_setup_error(error: SetupError) -> None:
    click.secho(f"\n❌ {error.message}", fg="red", bold=True)
    click.secho(f"   [{error.code.value}]", dim=True)
    if error.output:
        click.echo()
        click.echo(error.output.rstrip())
    if error.remediation:
        click.secho("\n💡 Suggestions:", fg="yellow")
        for hint in error.remediation:
            click.secho(f"   • {hint}", fg="yellow")
    if error.rollback_error:
        click.secho(f"\n⚠️  Cleanup failed: {error.rollback_error}", fg="yellow")


def show_runtime_error(error: RuntimeCheckError) -> None:
    click.secho(f"❌ {error}", fg="red")
    for hint in error.hints:
        click.secho(f"  • {hint}", fg="yellow")


def show_next_steps(config: ScaffoldConfig) -> None:
    click.secho(f"\n🎉 Project {config.project_name} created!", fg="green", bold=True)
    click.echo("\nNext steps:")
    click.secho(f"   cd {config.project_name}", fg="cyan")
    click.secho(f"   {dev_command(config.package_manager)}", fg="cyan")
    click.echo()
