"""Unit tests for Settings and the settings accessors."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mnemograph.config import get_settings, load_settings, reload_settings
from mnemograph.config.settings import Settings

REPO_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


class TestSettings:
    """Tests for Settings model."""

    def test_default_values(self) -> None:
        settings = Settings()
        assert settings.app_name == "mnemograph"
        assert settings.debug is False

    def test_graph_defaults(self) -> None:
        """Decay and search defaults match the engine's documented values."""
        settings = Settings()
        assert settings.graph.decay.enabled is True
        assert settings.graph.decay.half_life_days == 30.0
        assert settings.graph.decay.min_confidence == 0.1
        assert settings.graph.search.default_limit == 10
        assert settings.graph.search.min_similarity == 0.6
        assert settings.graph.search.fallback_oversample == 2

    def test_storage_defaults(self) -> None:
        settings = Settings()
        assert settings.storage.backend == "neo4j"
        assert settings.storage.vector_index_name == "entity_embeddings"
        assert settings.storage.similarity_function == "cosine"
        assert settings.storage.password is None

    def test_env_overrides_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """MNEMOGRAPH_* variables override nested fields."""
        monkeypatch.setenv("MNEMOGRAPH_DEBUG", "true")
        monkeypatch.setenv("MNEMOGRAPH_GRAPH__DECAY__HALF_LIFE_DAYS", "7")
        settings = Settings()
        assert settings.debug is True
        assert settings.graph.decay.half_life_days == 7.0

    def test_password_is_secret(self) -> None:
        settings = Settings(storage={"password": "hunter2"})
        assert "hunter2" not in repr(settings.storage)
        assert settings.storage.password.get_secret_value() == "hunter2"

    def test_dimension_mismatch_rejected(self) -> None:
        with pytest.raises(ValidationError, match="does not match"):
            Settings(
                storage={"dimensions": 768},
                providers={"embedding": {"dimensions": 384}},
            )

    def test_invalid_half_life_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(graph={"decay": {"half_life_days": 0}})


class TestLoadSettings:
    """Tests for load_settings and the cached accessors."""

    def test_toml_layers_applied(self, config_dir: Path, write_config) -> None:
        write_config({
            "default.toml": "app_name = 'from-toml'\n[storage]\nbackend = 'neo4j'",
            "test.toml": "[storage]\nbackend = 'inmemory'",
        })

        settings = load_settings(config_dir, env="test")
        assert settings.app_name == "from-toml"
        assert settings.storage.backend == "inmemory"

    def test_env_beats_toml(
        self, config_dir: Path, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_config({"default.toml": "debug = false"})
        monkeypatch.setenv("MNEMOGRAPH_DEBUG", "true")
        settings = load_settings(config_dir, env="none")
        assert settings.debug is True

    def test_overrides_beat_everything(self, config_dir: Path, write_config) -> None:
        write_config({"default.toml": "app_name = 'from-toml'"})
        settings = load_settings(config_dir, env="none", app_name="explicit")
        assert settings.app_name == "explicit"

    def test_get_settings_cached(
        self, config_dir: Path, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_config({"default.toml": "app_name = 'cached'"})
        monkeypatch.setenv("MNEMOGRAPH_CONFIG_DIR", str(config_dir))

        assert get_settings() is get_settings()

    def test_reload_settings_rereads(
        self, config_dir: Path, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_config({"default.toml": "app_name = 'first'"})
        monkeypatch.setenv("MNEMOGRAPH_CONFIG_DIR", str(config_dir))
        assert get_settings().app_name == "first"

        write_config({"default.toml": "app_name = 'second'"})
        assert reload_settings().app_name == "second"


class TestShippedConfig:
    """The repository's own config files load and validate."""

    @pytest.fixture(autouse=True)
    def _no_secret_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("NEO4J_PASSWORD", "OPENAI_API_KEY"):
            monkeypatch.delenv(var, raising=False)

    def test_default_config(self) -> None:
        settings = load_settings(REPO_CONFIG_DIR, env="production")
        assert settings.storage.backend == "neo4j"
        assert settings.providers.embedding.provider == "auto"

    def test_test_config(self) -> None:
        settings = load_settings(REPO_CONFIG_DIR, env="test")
        assert settings.storage.backend == "inmemory"
        assert settings.providers.embedding.provider == "mock"
        assert settings.providers.embedding.dimensions == 16
