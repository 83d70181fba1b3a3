"""Root settings model for mnemograph configuration."""

from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mnemograph.config.models.graph import GraphConfig
from mnemograph.config.models.observability import ObservabilityConfig
from mnemograph.config.models.providers import ProvidersConfig
from mnemograph.config.models.storage import StorageConfig

# Merged TOML layers, installed by mnemograph.config before Settings() is built
_file_layers: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Install the merged TOML layers read by the next Settings()."""
    global _file_layers
    _file_layers = dict(config)


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source over the merged TOML layers."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _file_layers.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {
            name: _file_layers[name]
            for name in self.settings_cls.model_fields
            if name in _file_layers
        }


class Settings(BaseSettings):
    """Engine configuration: store, embedding provider, graph behaviour, logging.

    Precedence, highest first: constructor arguments, MNEMOGRAPH_*
    environment variables (`__` separates nesting, e.g.
    MNEMOGRAPH_GRAPH__DECAY__HALF_LIFE_DAYS), config/{MNEMOGRAPH_ENV}.toml,
    config/default.toml, model defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="MNEMOGRAPH_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="mnemograph", description="Application name for logging")
    debug: bool = Field(
        default=False,
        description="Attach step-by-step diagnostics to search and decay results",
    )

    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Graph store configuration",
    )
    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig,
        description="Embedding provider configuration",
    )
    graph: GraphConfig = Field(
        default_factory=GraphConfig,
        description="Versioning, decay and retrieval configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @model_validator(mode="after")
    def _vector_dimensions_agree(self) -> "Settings":
        index_dims = self.storage.dimensions
        provider_dims = self.providers.embedding.dimensions
        if index_dims and provider_dims and index_dims != provider_dims:
            raise ValueError(
                f"storage.dimensions ({index_dims}) does not match "
                f"providers.embedding.dimensions ({provider_dims})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
