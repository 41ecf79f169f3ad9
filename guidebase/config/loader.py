"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. Settings defaults   -- declared on guidebase.config.settings.Settings
#   2. config/config.yaml  -- static values checked into the repo
#   3. .env file           -- local overrides (not committed)
#   4. Environment vars    -- set at deploy time
#
# Only fields that .env or the environment actually set override the YAML;
# a Settings default never masks a YAML value.  load_settings() turns the
# merged result back into a Settings object for build_services().
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from guidebase.config.settings import Settings
from guidebase.utils.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"

# Settings field -> (YAML section, YAML key)
_FIELD_PATHS: dict[str, tuple[str, str]] = {
    "app_env": ("app", "env"),
    "data_dir": ("storage", "data_dir"),
    "sqlite_path": ("storage", "sqlite_path"),
    "object_store_dir": ("storage", "object_store_dir"),
    "chromadb_persist_dir": ("storage", "chromadb_persist_dir"),
    "chromadb_collection": ("storage", "chromadb_collection"),
    "embedding_model": ("embedding", "model"),
    "max_chunk_tokens": ("chunking", "max_chunk_tokens"),
    "frameworks": ("chunking", "frameworks"),
    "languages": ("chunking", "languages"),
    "keyword_boost": ("search", "keyword_boost"),
    "default_search_limit": ("search", "default_limit"),
    "ingest_concurrency": ("ingestion", "concurrency"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = DEFAULT_CONFIG_PATH, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Settings defaults sit below the YAML file; values set through the
    environment or ``.env`` sit above it.

    Args:
        path: Path to the YAML configuration file. A missing file is not an error.
        settings: Pre-built settings; a fresh ``Settings()`` is read otherwise.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()
    config = _nest(settings, _FIELD_PATHS)
    _deep_merge(config, _read_yaml(Path(path)))
    _deep_merge(
        config,
        _nest(settings, {f: p for f, p in _FIELD_PATHS.items() if f in settings.model_fields_set}),
    )
    return config


def load_settings(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """Resolve :class:`Settings` from defaults, the YAML file, and the environment.

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    config = load_config(path)
    try:
        values = {field: config[section][key] for field, (section, key) in _FIELD_PATHS.items()}
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Malformed section in {path}: {exc!r}") from exc
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc


def _read_yaml(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(yaml_config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return yaml_config


def _nest(settings: Settings, paths: dict[str, tuple[str, str]]) -> dict:
    nested: dict = {}
    for field, (section, key) in paths.items():
        nested.setdefault(section, {})[key] = getattr(settings, field)
    return nested


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
