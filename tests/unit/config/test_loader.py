"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from mnemograph.config.loader import (
    apply_env_secrets,
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Layer merging."""

    def test_merge_nested_tables(self) -> None:
        """Nested tables merge recursively."""
        base = {"graph": {"decay": {"enabled": True, "half_life_days": 30}}}
        override = {"graph": {"decay": {"half_life_days": 7}}}
        result = deep_merge(base, override)
        assert result == {"graph": {"decay": {"enabled": True, "half_life_days": 7}}}

    def test_override_replaces_non_table(self) -> None:
        result = deep_merge({"storage": {"backend": "neo4j"}}, {"storage": "inmemory"})
        assert result == {"storage": "inmemory"}

    def test_base_unmodified(self) -> None:
        """Inputs are not mutated."""
        base = {"storage": {"backend": "neo4j"}}
        deep_merge(base, {"storage": {"backend": "inmemory"}})
        assert base == {"storage": {"backend": "neo4j"}}


class TestLoadToml:
    """Single-file parsing."""

    def test_parses_tables(self, tmp_path: Path) -> None:
        path = tmp_path / "layer.toml"
        path.write_text('[storage]\nbackend = "inmemory"\ndimensions = 16')

        assert load_toml(path) == {"storage": {"backend": "inmemory", "dimensions": 16}}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "nonexistent.toml")

    def test_syntax_error_propagates(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.toml"
        path.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(path)


class TestGetEnvironment:
    """MNEMOGRAPH_ENV handling."""

    def test_returns_env_var_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MNEMOGRAPH_ENV", "production")
        assert get_environment() == "production"

    def test_defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MNEMOGRAPH_ENV", raising=False)
        assert get_environment() == "development"


class TestGetConfigDir:
    """Config directory discovery."""

    def test_uses_env_var_when_set(
        self, config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """MNEMOGRAPH_CONFIG_DIR wins over discovery."""
        monkeypatch.setenv("MNEMOGRAPH_CONFIG_DIR", str(config_dir))
        assert get_config_dir() == config_dir

    def test_raises_for_missing_env_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MNEMOGRAPH_CONFIG_DIR", str(tmp_path / "missing"))
        with pytest.raises(FileNotFoundError):
            get_config_dir()

    def test_discovers_config_in_parent(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Searches parents of the start directory for config/default.toml."""
        monkeypatch.delenv("MNEMOGRAPH_CONFIG_DIR", raising=False)
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "default.toml").write_text("debug = false")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert get_config_dir(start=nested) == config_dir.resolve()


class TestApplyEnvSecrets:
    """Connection secrets from the environment."""

    def test_fills_unset_password(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NEO4J_PASSWORD", "s3cret")
        result = apply_env_secrets({"storage": {"backend": "neo4j"}})
        assert result["storage"] == {"backend": "neo4j", "password": "s3cret"}

    def test_config_value_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NEO4J_URI", "bolt://env:7687")
        result = apply_env_secrets({"storage": {"uri": "bolt://toml:7687"}})
        assert result["storage"]["uri"] == "bolt://toml:7687"

    def test_creates_missing_tables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        result = apply_env_secrets({})
        assert result["providers"]["embedding"]["api_key"] == "sk-test"


class TestLoadConfig:
    """Full layered load."""

    @pytest.fixture(autouse=True)
    def _no_secret_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("NEO4J_URI", "NEO4J_USERNAME", "NEO4J_PASSWORD", "NEO4J_DATABASE", "OPENAI_API_KEY"):
            monkeypatch.delenv(var, raising=False)

    def test_loads_default_config(
        self, config_dir: Path, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_config({"default.toml": "app_name = 'test'\ndebug = false"})
        monkeypatch.setenv("MNEMOGRAPH_CONFIG_DIR", str(config_dir))
        monkeypatch.setenv("MNEMOGRAPH_ENV", "nonexistent")

        assert load_config() == {"app_name": "test", "debug": False}

    def test_merges_environment_config(self, config_dir: Path, write_config) -> None:
        write_config({
            "default.toml": "[storage]\nbackend = 'neo4j'\ndatabase = 'neo4j'",
            "test.toml": "[storage]\nbackend = 'inmemory'",
        })

        result = load_config(config_dir, env="test")
        assert result == {"storage": {"backend": "inmemory", "database": "neo4j"}}

    def test_missing_default_raises(self, config_dir: Path) -> None:
        with pytest.raises(FileNotFoundError, match="default.toml"):
            load_config(config_dir, env="test")
