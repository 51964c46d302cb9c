"""
Shared test fixtures and configuration.
"""

import json
from pathlib import Path

import pytest

from create_enfyra_be.core.models.config import ScaffoldConfig


@pytest.fixture
def make_config():
    """Factory for a valid ScaffoldConfig with per-test overrides."""

    def _make(**overrides) -> ScaffoldConfig:
        values = {"project_name": "demo-app"}
        values.update(overrides)
        return ScaffoldConfig.model_validate(values)

    return _make


@pytest.fixture
def template_fetcher():
    """Fetcher that lays down a minimal Enfyra-like template."""

    def _fetch(repo: str, dest: Path) -> None:
        manifest = {
            "name": "enfyra_be",
            "version": "1.4.2",
            "repository": {"type": "git", "url": repo},
            "bugs": {"url": "https://example.com/issues"},
            "homepage": "https://example.com",
            "scripts": {"start:dev": "nest start --watch"},
        }
        (dest / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
        (dest / "data").mkdir()
        seed = {
            "user_definition": {
                "email": "placeholder@example.com",
                "password": "placeholder",
                "isRootAdmin": True,
            },
            "setting_definition": {"projectName": "Enfyra"},
        }
        (dest / "data" / "default-data.json").write_text(json.dumps(seed), encoding="utf-8")

    return _fetch

