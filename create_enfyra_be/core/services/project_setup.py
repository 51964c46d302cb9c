"""
Provisioning pipeline — materialize a project from the remote template.

Stages run strictly in order, each gated on the previous one:

    1. capacity     enough free disk space
    2. directory    create the project root (never overwrite)
    3. template     fetch the remote template into it
    4. manifest     rewrite package.json identity fields
    5. seed         put the admin credentials into the seed data
    6. config       write the generated .env
    7. install      install dependencies

Every artifact lives under the project root, so rollback is a single
best-effort recursive removal of that root, done only when this run
created it.  The pipeline is not resumable.
"""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from create_enfyra_be.adapters.shell.command import run_command
from create_enfyra_be.core.errors import ErrorCode, SetupError
from create_enfyra_be.core.models.config import ScaffoldConfig
from create_enfyra_be.core.services import capacity
from create_enfyra_be.core.services.env_builder import ENV_FILENAME, render_env
from create_enfyra_be.core.services.package_managers import (
    install_command,
    install_remediation,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
SEED_DATA_PATH = Path("data") / "default-data.json"
BASELINE_VERSION = "0.0.1"

# Upstream metadata removed from the fetched manifest
_UPSTREAM_MANIFEST_KEYS = ("repository", "bugs", "homepage")


@dataclass
class ProjectContext:
    """State owned by one pipeline run."""

    project_path: Path
    config: ScaffoldConfig
    created_artifacts: list[Path] = field(default_factory=list)

    def record(self, path: Path) -> None:
        self.created_artifacts.append(path)

    @property
    def owns_root(self) -> bool:
        return self.project_path in self.created_artifacts


StageFn = Callable[[ProjectContext], None]
TemplateFetcher = Callable[[str, Path], None]
Renderer = Callable[[ScaffoldConfig], str]
Installer = Callable[[ScaffoldConfig, Path], None]


@dataclass(frozen=True)
class PipelineStage:
    """One unit of work.  ``reversible`` stages leave artifacts only under
    the project root, where rollback removes them."""

    name: str
    run: StageFn
    reversible: bool = True


# ═══════════════════════════════════════════════════════════════════
#  External collaborators (defaults)
# ═══════════════════════════════════════════════════════════════════


def git_clone_template(repo: str, dest: Path) -> None:
    """Shallow-clone ``repo`` into ``dest`` and drop its git history."""
    result = run_command(["git", "clone", "--depth", "1", repo, "."], cwd=dest)
    if not result.ok:
        raise SetupError(
            ErrorCode.TEMPLATE_FETCH_FAILED,
            f"Failed to clone repository: {repo}",
            output=result.output,
            remediation=[
                "Check internet connection",
                f"Verify Git repository URL: {repo}",
                "Ensure Git is installed",
            ],
        )
    shutil.rmtree(dest / ".git")


def make_installer(alternatives: list[str] | None = None) -> Installer:
    """Installer that runs the selected package manager in the project root."""

    def install(config: ScaffoldConfig, project_path: Path) -> None:
        manager = config.package_manager
        result = run_command(install_command(manager), cwd=project_path)
        if not result.ok:
            raise SetupError(
                ErrorCode.INSTALL_FAILED,
                f"{manager} install failed (exit code {result.returncode})",
                output=result.output,
                remediation=install_remediation(manager, alternatives),
            )
        logger.info("Dependencies installed with %s in %dms", manager, result.duration_ms)

    return install


# ═══════════════════════════════════════════════════════════════════
#  Stages
# ═══════════════════════════════════════════════════════════════════


def _capacity_stage(minimum_bytes: int) -> StageFn:
    def run(ctx: ProjectContext) -> None:
        capacity.check(ctx.project_path, minimum_bytes)

    return run


def create_directory(ctx: ProjectContext) -> None:
    path = ctx.project_path
    if path.exists():
        raise SetupError(
            ErrorCode.DIR_EXISTS,
            f"Directory {path} already exists",
            remediation=["Choose another project name or remove the existing directory"],
        )
    try:
        path.mkdir()
    except FileExistsError as exc:
        raise SetupError(
            ErrorCode.DIR_EXISTS, f"Directory {path} already exists",
        ) from exc
    ctx.record(path)


def _template_stage(fetcher: TemplateFetcher) -> StageFn:
    def run(ctx: ProjectContext) -> None:
        fetcher(ctx.config.template_repo, ctx.project_path)

    return run


def rewrite_manifest(ctx: ProjectContext) -> None:
    """Give the fetched manifest the new project's identity."""
    manifest_path = ctx.project_path / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise SetupError(
            ErrorCode.MANIFEST_MISSING,
            f"Template has no {MANIFEST_FILENAME}",
            remediation=["Verify the template repository is an Enfyra backend"],
        )

    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SetupError(
            ErrorCode.UNKNOWN, f"Invalid JSON in {MANIFEST_FILENAME}: {exc}",
        ) from exc

    manifest["name"] = ctx.config.project_name
    manifest["version"] = BASELINE_VERSION
    for key in _UPSTREAM_MANIFEST_KEYS:
        manifest.pop(key, None)

    manifest_path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    ctx.record(manifest_path)


def _admin_entry(user_definition: object) -> dict | None:
    """The admin placeholder: an object, or the root admin / first list item."""
    if isinstance(user_definition, dict):
        return user_definition
    if isinstance(user_definition, list):
        users = [u for u in user_definition if isinstance(u, dict)]
        for user in users:
            if user.get("isRootAdmin"):
                return user
        return users[0] if users else None
    return None


def seed_admin(ctx: ProjectContext) -> None:
    """Overwrite the seed data's admin placeholder, if the template has one."""
    seed_path = ctx.project_path / SEED_DATA_PATH
    if not seed_path.is_file():
        logger.debug("No seed data at %s; skipping admin seed", seed_path)
        return

    try:
        data = json.loads(seed_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SetupError(
            ErrorCode.UNKNOWN, f"Invalid JSON in {SEED_DATA_PATH}: {exc}",
        ) from exc

    admin = _admin_entry(data.get("user_definition")) if isinstance(data, dict) else None
    if admin is None:
        logger.debug("Seed data has no admin placeholder; skipping")
        return

    admin["email"] = ctx.config.admin_email
    admin["password"] = ctx.config.admin_password
    seed_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    ctx.record(seed_path)


def _config_stage(renderer: Renderer) -> StageFn:
    def run(ctx: ProjectContext) -> None:
        env_path = ctx.project_path / ENV_FILENAME
        env_path.write_text(renderer(ctx.config), encoding="utf-8")
        ctx.record(env_path)

    return run


def _install_stage(installer: Installer) -> StageFn:
    def run(ctx: ProjectContext) -> None:
        installer(ctx.config, ctx.project_path)
        ctx.record(ctx.project_path / "node_modules")

    return run


def build_stages(
    *,
    fetcher: TemplateFetcher = git_clone_template,
    renderer: Renderer = render_env,
    installer: Installer | None = None,
    minimum_bytes: int = capacity.MIN_REQUIRED_BYTES,
) -> list[PipelineStage]:
    """The default stage sequence with injectable collaborators."""
    return [
        PipelineStage("capacity", _capacity_stage(minimum_bytes), reversible=False),
        PipelineStage("directory", create_directory),
        PipelineStage("template", _template_stage(fetcher)),
        PipelineStage("manifest", rewrite_manifest),
        PipelineStage("seed", seed_admin),
        PipelineStage("config", _config_stage(renderer)),
        PipelineStage("install", _install_stage(installer or make_installer())),
    ]


# ═══════════════════════════════════════════════════════════════════
#  Pipeline
# ═══════════════════════════════════════════════════════════════════


class ProvisioningPipeline:
    """Run stages in order; on the first failure roll back and re-raise."""

    def __init__(self, stages: list[PipelineStage]) -> None:
        self.stages = list(stages)

    def run(
        self,
        ctx: ProjectContext,
        on_stage: Callable[[PipelineStage], None] | None = None,
    ) -> ProjectContext:
        for stage in self.stages:
            if on_stage is not None:
                on_stage(stage)
            logger.info("Stage %s: %s", stage.name, ctx.project_path)
            try:
                stage.run(ctx)
            except SetupError as error:
                error.details.setdefault("stage", stage.name)
                self._rollback(ctx, error)
                raise
            except Exception as exc:
                error = SetupError(
                    ErrorCode.UNKNOWN,
                    f"Stage '{stage.name}' failed: {exc}",
                    details={"stage": stage.name},
                )
                self._rollback(ctx, error)
                raise error from exc
            except BaseException:
                logger.warning("Stage %s interrupted; rolling back", stage.name)
                self._rollback(ctx, None)
                raise
        return ctx

    @staticmethod
    def _rollback(ctx: ProjectContext, error: SetupError | None) -> None:
        """Remove the project root if this run created it; never mask ``error``."""
        if not ctx.owns_root:
            return
        root = ctx.project_path
        try:
            shutil.rmtree(root)
        except OSError as exc:
            logger.error("Rollback failed for %s: %s", root, exc)
            if error is not None:
                error.rollback_error = str(exc)
                error.remediation.append(f"Could not clean up {root}; please delete it manually")
        else:
            logger.info("Rolled back %s (%d artifacts)", root, len(ctx.created_artifacts))
        ctx.created_artifacts.clear()


def run_pipeline(
    config: ScaffoldConfig,
    *,
    cwd: Path | None = None,
    fetcher: TemplateFetcher = git_clone_template,
    renderer: Renderer = render_env,
    installer: Installer | None = None,
    minimum_bytes: int = capacity.MIN_REQUIRED_BYTES,
    alternatives: list[str] | None = None,
    on_stage: Callable[[PipelineStage], None] | None = None,
) -> ProjectContext:
    """Create ``<cwd>/<project_name>`` from ``config``.

    Raises:
        SetupError: The first failing stage's error, after rollback.
    """
    project_path = (cwd or Path.cwd()).resolve() / config.project_name
    ctx = ProjectContext(project_path=project_path, config=config)
    stages = build_stages(
        fetcher=fetcher,
        renderer=renderer,
        installer=installer or make_installer(alternatives),
        minimum_bytes=minimum_bytes,
    )
    return ProvisioningPipeline(stages).run(ctx, on_stage=on_stage)
