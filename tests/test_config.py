"""
Tests for the defaults loader — enfyra.yml discovery and parsing.
"""

import textwrap
from pathlib import Path

import pytest

from create_enfyra_be.core.config.loader import (
    ConfigError,
    build_config,
    find_defaults_file,
    load_defaults,
)
from create_enfyra_be.core.services.env_builder import render_env


@pytest.fixture
def defaults_yml(tmp_path: Path) -> Path:
    content = textwrap.dedent("""\
        project_name: from-file
        package_manager: npm
        db_type: postgres
        db_port: 5432
        redis_uri: redis://cache:6379
        admin_email: ops@example.com
    """)
    path = tmp_path / "enfyra.yml"
    path.write_text(content)
    return path


class TestFindDefaultsFile:
    def test_in_start_dir(self, defaults_yml: Path):
        assert find_defaults_file(defaults_yml.parent) == defaults_yml.resolve()

    def test_walks_up(self, defaults_yml: Path):
        nested = defaults_yml.parent / "a" / "b"
        nested.mkdir(parents=True)
        assert find_defaults_file(nested) == defaults_yml.resolve()

    def test_not_found(self, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        found = find_defaults_file(empty)
        assert found is None or not str(found).startswith(str(tmp_path.resolve()))


class TestLoadDefaults:
    def test_flat(self, defaults_yml: Path):
        data = load_defaults(defaults_yml)
        assert data["db_type"] == "postgres"
        assert data["db_port"] == 5432

    def test_wrapped(self, tmp_path: Path):
        path = tmp_path / "enfyra.yml"
        path.write_text("enfyra:\n  db_type: mongodb\n")
        assert load_defaults(path) == {"db_type": "mongodb"}

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "enfyra.yml"
        path.write_text("")
        assert load_defaults(path) == {}

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_defaults(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "enfyra.yml"
        path.write_text("db_type: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_defaults(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "enfyra.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_defaults(path)

    def test_unknown_keys(self, tmp_path: Path):
        path = tmp_path / "enfyra.yml"
        path.write_text("db_type: mysql\nsalt_rounds: 12\n")
        with pytest.raises(ConfigError, match="salt_rounds"):
            load_defaults(path)

    def test_auto_discovery(self, defaults_yml: Path, monkeypatch):
        monkeypatch.chdir(defaults_yml.parent)
        assert load_defaults()["project_name"] == "from-file"


class TestBuildConfig:
    def test_valid(self, defaults_yml: Path):
        config = build_config(load_defaults(defaults_yml))
        assert config.project_name == "from-file"
        assert config.redis_uri == "redis://cache:6379"

    def test_invalid(self):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            build_config({"project_name": "x", "db_port": "not-a-port"})

    @pytest.mark.parametrize("db_type, port, env_line", [
        ("postgres", 5432, "DB_PORT=5432"),
        ("mongodb", 27017, "MONGO_URI=mongodb://root:@localhost:27017/enfyra?authSource=admin"),
    ])
    def test_port_follows_db_type(self, tmp_path: Path, db_type, port, env_line):
        path = tmp_path / "enfyra.yml"
        path.write_text(f"project_name: x\ndb_type: {db_type}\n")
        config = build_config(load_defaults(path))
        assert config.db_port == port
        assert env_line in render_env(config).splitlines()
