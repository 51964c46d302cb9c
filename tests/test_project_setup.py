"""
Tests for the provisioning pipeline — stages, rollback, uniqueness.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from create_enfyra_be.adapters.shell.command import CommandResult
from create_enfyra_be.core.errors import ErrorCode, SetupError
from create_enfyra_be.core.services import project_setup
from create_enfyra_be.core.services.project_setup import (
    ProjectContext,
    ProvisioningPipeline,
    PipelineStage,
    build_stages,
    git_clone_template,
    make_installer,
    run_pipeline,
)


def _installer(config, project_path: Path) -> None:
    (project_path / "node_modules").mkdir()


def _failing_installer(config, project_path: Path) -> None:
    (project_path / "node_modules").mkdir()
    raise SetupError(
        ErrorCode.INSTALL_FAILED,
        "npm install failed (exit code 1)",
        output="npm ERR! 404 Not Found",
    )


def _run(config, cwd: Path, **overrides):
    kwargs = {"cwd": cwd, "installer": _installer, "minimum_bytes": 1}
    kwargs.update(overrides)
    return run_pipeline(config, **kwargs)


class TestSuccessfulRun:
    def test_creates_project(self, make_config, template_fetcher, tmp_path: Path):
        config = make_config(admin_email="owner@example.com", admin_password="s3cret")
        ctx = _run(config, tmp_path, fetcher=template_fetcher)

        root = tmp_path / "demo-app"
        assert ctx.project_path == root.resolve()
        assert (root / "node_modules").is_dir()
        assert "DB_TYPE=mysql" in (root / ".env").read_text()

    def test_manifest_rewritten(self, make_config, template_fetcher, tmp_path: Path):
        _run(make_config(), tmp_path, fetcher=template_fetcher)
        manifest = json.loads((tmp_path / "demo-app" / "package.json").read_text())
        assert manifest["name"] == "demo-app"
        assert manifest["version"] == "0.0.1"
        assert "repository" not in manifest
        assert "bugs" not in manifest
        assert "homepage" not in manifest
        assert manifest["scripts"] == {"start:dev": "nest start --watch"}

    def test_admin_seeded(self, make_config, template_fetcher, tmp_path: Path):
        config = make_config(admin_email="owner@example.com", admin_password="s3cret")
        _run(config, tmp_path, fetcher=template_fetcher)
        seed = json.loads((tmp_path / "demo-app" / "data" / "default-data.json").read_text())
        assert seed["user_definition"]["email"] == "owner@example.com"
        assert seed["user_definition"]["password"] == "s3cret"
        assert seed["user_definition"]["isRootAdmin"] is True
        assert seed["setting_definition"] == {"projectName": "Enfyra"}

    def test_admin_seeded_in_user_list(self, make_config, tmp_path: Path):
        def fetcher(repo, dest):
            (dest / "package.json").write_text("{}")
            (dest / "data").mkdir()
            users = [
                {"email": "guest@example.com", "password": "x"},
                {"email": "admin@example.com", "password": "x", "isRootAdmin": True},
            ]
            (dest / "data" / "default-data.json").write_text(json.dumps({"user_definition": users}))

        _run(make_config(admin_email="owner@example.com"), tmp_path, fetcher=fetcher)
        seed = json.loads((tmp_path / "demo-app" / "data" / "default-data.json").read_text())
        assert seed["user_definition"][0]["email"] == "guest@example.com"
        assert seed["user_definition"][1]["email"] == "owner@example.com"

    def test_seed_optional(self, make_config, tmp_path: Path):
        def fetcher(repo, dest):
            (dest / "package.json").write_text("{}")

        ctx = _run(make_config(), tmp_path, fetcher=fetcher)
        assert not (ctx.project_path / "data").exists()

    def test_artifacts_recorded_in_order(self, make_config, template_fetcher, tmp_path: Path):
        ctx = _run(make_config(), tmp_path, fetcher=template_fetcher)
        root = ctx.project_path
        assert ctx.created_artifacts == [
            root,
            root / "package.json",
            root / "data" / "default-data.json",
            root / ".env",
            root / "node_modules",
        ]

    def test_stage_callback(self, make_config, template_fetcher, tmp_path: Path):
        seen = []
        _run(make_config(), tmp_path, fetcher=template_fetcher, on_stage=lambda s: seen.append(s.name))
        assert seen == ["capacity", "directory", "template", "manifest", "seed", "config", "install"]

    def test_renderer_output_written(self, make_config, template_fetcher, tmp_path: Path):
        _run(make_config(), tmp_path, fetcher=template_fetcher, renderer=lambda c: "X=1\n")
        assert (tmp_path / "demo-app" / ".env").read_text() == "X=1\n"


# ── Rollback ────────────────────────────────────────────────────────


def _broken_seed_fetcher(repo, dest):
    (dest / "package.json").write_text("{}")
    (dest / "data").mkdir()
    (dest / "data" / "default-data.json").write_text("{not json")


def _fetch_fails(repo, dest):
    (dest / "README.md").write_text("partial")
    raise SetupError(ErrorCode.TEMPLATE_FETCH_FAILED, "Failed to clone repository")


def _no_manifest(repo, dest):
    (dest / "README.md").write_text("no manifest here")


def _renderer_fails(config):
    raise RuntimeError("renderer crashed")


class TestRollback:
    @pytest.mark.parametrize("stage,overrides,expected", [
        ("template", {"fetcher": _fetch_fails}, ErrorCode.TEMPLATE_FETCH_FAILED),
        ("manifest", {"fetcher": _no_manifest}, ErrorCode.MANIFEST_MISSING),
        ("seed", {"fetcher": _broken_seed_fetcher}, ErrorCode.UNKNOWN),
        ("config", {"renderer": _renderer_fails}, ErrorCode.UNKNOWN),
        ("install", {"installer": _failing_installer}, ErrorCode.INSTALL_FAILED),
    ])
    def test_failure_removes_directory(
        self, make_config, template_fetcher, tmp_path: Path, stage, overrides, expected,
    ):
        kwargs = {"fetcher": template_fetcher}
        kwargs.update(overrides)
        with pytest.raises(SetupError) as excinfo:
            _run(make_config(), tmp_path, **kwargs)
        assert excinfo.value.code == expected
        assert excinfo.value.details["stage"] == stage
        assert not (tmp_path / "demo-app").exists()

    def test_directory_stage_failure(self, make_config, template_fetcher, tmp_path: Path):
        with patch.object(Path, "mkdir", side_effect=PermissionError("read-only")):
            with pytest.raises(SetupError) as excinfo:
                _run(make_config(), tmp_path, fetcher=template_fetcher)
        assert excinfo.value.code == ErrorCode.UNKNOWN
        assert excinfo.value.details["stage"] == "directory"
        assert not (tmp_path / "demo-app").exists()

    def test_install_failure_keeps_output(self, make_config, template_fetcher, tmp_path: Path):
        with pytest.raises(SetupError) as excinfo:
            _run(make_config(), tmp_path, fetcher=template_fetcher, installer=_failing_installer)
        assert excinfo.value.output == "npm ERR! 404 Not Found"

    def test_capacity_failure_creates_nothing(self, make_config, template_fetcher, tmp_path: Path):
        fetched = []

        def fetcher(repo, dest):
            fetched.append(dest)
            template_fetcher(repo, dest)

        with pytest.raises(SetupError) as excinfo:
            _run(make_config(), tmp_path, fetcher=fetcher, minimum_bytes=1024**6)
        assert excinfo.value.code == ErrorCode.INSUFFICIENT_SPACE
        assert excinfo.value.details["stage"] == "capacity"
        assert fetched == []
        assert list(tmp_path.iterdir()) == []

    def test_rollback_failure_does_not_mask_error(
        self, make_config, template_fetcher, tmp_path: Path,
    ):
        with patch.object(project_setup.shutil, "rmtree", side_effect=OSError("device busy")):
            with pytest.raises(SetupError) as excinfo:
                _run(make_config(), tmp_path, fetcher=template_fetcher, installer=_failing_installer)
        error = excinfo.value
        assert error.code == ErrorCode.INSTALL_FAILED
        assert error.rollback_error == "device busy"
        assert any("delete it manually" in hint for hint in error.remediation)
        assert (tmp_path / "demo-app").exists()

    def test_unexpected_exception_is_wrapped(self, make_config, tmp_path: Path):
        def boom(ctx):
            raise ValueError("kaboom")

        ctx = ProjectContext(project_path=tmp_path / "x", config=make_config())
        pipeline = ProvisioningPipeline([PipelineStage("custom", boom)])
        with pytest.raises(SetupError) as excinfo:
            pipeline.run(ctx)
        assert excinfo.value.code == ErrorCode.UNKNOWN
        assert "kaboom" in excinfo.value.message
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_interrupt_rolls_back_and_propagates(self, make_config, template_fetcher, tmp_path: Path):
        def interrupted_install(config, project_path: Path) -> None:
            (project_path / "node_modules").mkdir()
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            _run(make_config(), tmp_path, fetcher=template_fetcher, installer=interrupted_install)
        assert not (tmp_path / "demo-app").exists()


class TestUniqueness:
    def test_second_run_fails_with_dir_exists(self, make_config, template_fetcher, tmp_path: Path):
        config = make_config()
        _run(config, tmp_path, fetcher=template_fetcher)
        root = tmp_path / "demo-app"
        before = sorted(p.relative_to(root) for p in root.rglob("*"))
        manifest_before = (root / "package.json").read_text()

        fetched = []
        with pytest.raises(SetupError) as excinfo:
            _run(config, tmp_path, fetcher=lambda repo, dest: fetched.append(dest))

        assert excinfo.value.code == ErrorCode.DIR_EXISTS
        assert fetched == []
        assert sorted(p.relative_to(root) for p in root.rglob("*")) == before
        assert (root / "package.json").read_text() == manifest_before

    def test_existing_foreign_directory_untouched(self, make_config, template_fetcher, tmp_path: Path):
        root = tmp_path / "demo-app"
        root.mkdir()
        (root / "keep.txt").write_text("mine")
        with pytest.raises(SetupError):
            _run(make_config(), tmp_path, fetcher=template_fetcher)
        assert (root / "keep.txt").read_text() == "mine"


# ── Default collaborators ───────────────────────────────────────────


class TestGitCloneTemplate:
    def test_clone_and_strip_history(self, tmp_path: Path):
        def fake_run(args, cwd=None, timeout=None):
            (Path(cwd) / ".git").mkdir()
            (Path(cwd) / "package.json").write_text("{}")
            return CommandResult(args=args, returncode=0)

        with patch.object(project_setup, "run_command", side_effect=fake_run) as run:
            git_clone_template("https://example.com/t.git", tmp_path)

        assert run.call_args.args[0] == [
            "git", "clone", "--depth", "1", "https://example.com/t.git", ".",
        ]
        assert run.call_args.kwargs["cwd"] == tmp_path
        assert not (tmp_path / ".git").exists()
        assert (tmp_path / "package.json").exists()

    def test_clone_failure(self, tmp_path: Path):
        failed = CommandResult(args=["git"], returncode=128, output="fatal: repository not found")
        with patch.object(project_setup, "run_command", return_value=failed):
            with pytest.raises(SetupError) as excinfo:
                git_clone_template("https://example.com/missing.git", tmp_path)
        assert excinfo.value.code == ErrorCode.TEMPLATE_FETCH_FAILED
        assert excinfo.value.output == "fatal: repository not found"
        assert "Ensure Git is installed" in excinfo.value.remediation


class TestInstaller:
    def test_runs_package_manager_without_timeout(self, make_config, tmp_path: Path):
        ok = CommandResult(args=["pnpm", "install"], returncode=0)
        with patch.object(project_setup, "run_command", return_value=ok) as run:
            make_installer()(make_config(package_manager="pnpm"), tmp_path)
        assert run.call_args.args[0] == ["pnpm", "install"]
        assert run.call_args.kwargs == {"cwd": tmp_path}

    def test_failure_carries_output_and_remediation(self, make_config, tmp_path: Path):
        failed = CommandResult(
            args=["yarn", "install"], returncode=1, output="error An unexpected error occurred",
        )
        with patch.object(project_setup, "run_command", return_value=failed):
            with pytest.raises(SetupError) as excinfo:
                make_installer(["npm", "yarn"])(make_config(package_manager="yarn"), tmp_path)
        error = excinfo.value
        assert error.code == ErrorCode.INSTALL_FAILED
        assert error.output == "error An unexpected error occurred"
        assert any("github.com/yarnpkg/berry/issues" in h for h in error.remediation)
        assert any("npm" in h and "another package manager" in h for h in error.remediation)


class TestBuildStages:
    def test_order_and_reversibility(self):
        stages = build_stages()
        assert [s.name for s in stages] == [
            "capacity", "directory", "template", "manifest", "seed", "config", "install",
        ]
        assert not stages[0].reversible
        assert all(s.reversible for s in stages[1:])
