"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

    1. config/config.yaml  -- static defaults checked into the repo
    2. .env file           -- local overrides (not committed)
    3. environment vars    -- set at deploy time

:func:`load_config` reads the YAML first and deep-merges the
environment-derived values from :class:`Settings` on top.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ragline.config.settings import Settings
from ragline.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              an empty base layer.
        settings: Pre-built settings (a fresh :class:`Settings` is read
                  from the environment when omitted).

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML cannot be parsed or is not a mapping.
    """
    config_path = Path(path)
    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse {config_path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
        yaml_config = loaded

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "embedding": {
            "provider": settings.embedding_provider,
            "batch_size": settings.embedding_batch_size,
            "similarity_threshold": settings.similarity_threshold,
            "available_providers": settings.get_available_embedding_providers(),
        },
        "chat": {
            "model": settings.chat_model,
            "temperature": settings.chat_temperature,
            "max_tokens": settings.chat_max_tokens,
        },
        "storage": {
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
            "document_db_path": settings.document_db_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
