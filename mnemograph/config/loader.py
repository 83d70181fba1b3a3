"""TOML configuration loading.

Layers, lowest precedence first: config/default.toml, config/{env}.toml,
then connection secrets taken from the environment when the files leave
them unset. MNEMOGRAPH_* variables are applied later by Settings.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_ENVIRONMENT = "development"

# Config path -> environment variable consulted when the path is unset
ENV_SECRETS: dict[tuple[str, ...], str] = {
    ("storage", "uri"): "NEO4J_URI",
    ("storage", "username"): "NEO4J_USERNAME",
    ("storage", "password"): "NEO4J_PASSWORD",
    ("storage", "database"): "NEO4J_DATABASE",
    ("providers", "embedding", "api_key"): "OPENAI_API_KEY",
}


def get_config_dir(start: Path | None = None) -> Path:
    """Locate the directory holding default.toml.

    MNEMOGRAPH_CONFIG_DIR wins when set. Otherwise `start` (default: the
    working directory) and its parents are searched for config/default.toml.

    Raises:
        FileNotFoundError: If MNEMOGRAPH_CONFIG_DIR points nowhere
    """
    override = os.environ.get("MNEMOGRAPH_CONFIG_DIR")
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / "config"
        if (candidate / "default.toml").is_file():
            return candidate

    return Path("config")


def get_environment() -> str:
    """Name of the environment overlay, from MNEMOGRAPH_ENV."""
    return os.environ.get("MNEMOGRAPH_ENV") or DEFAULT_ENVIRONMENT


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    return tomllib.loads(file_path.read_text(encoding="utf-8"))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge `override` into a copy of `base`; nested tables merge recursively."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def apply_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Fill unset connection settings from NEO4J_* and OPENAI_API_KEY."""
    result = dict(config)
    for path, env_var in ENV_SECRETS.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        table = result
        for part in path[:-1]:
            child = table.get(part)
            table[part] = dict(child) if isinstance(child, dict) else {}
            table = table[part]
        table.setdefault(path[-1], value)
    return result


def load_config(config_dir: Path | None = None, env: str | None = None) -> dict[str, Any]:
    """Load and merge the TOML layers.

    Args:
        config_dir: Directory with default.toml (discovered if None)
        env: Environment overlay name (MNEMOGRAPH_ENV if None)

    Raises:
        FileNotFoundError: If default.toml is missing
    """
    directory = config_dir or get_config_dir()
    default_path = directory / "default.toml"
    if not default_path.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            "Create config/default.toml or set MNEMOGRAPH_CONFIG_DIR."
        )

    config = load_toml(default_path)

    overlay = directory / f"{env or get_environment()}.toml"
    if overlay.is_file():
        config = deep_merge(config, load_toml(overlay))

    return apply_env_secrets(config)
