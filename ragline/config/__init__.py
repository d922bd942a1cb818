"""Configuration: environment settings, YAML loader and retrieval profiles."""

from ragline.config.loader import load_config
from ragline.config.retrieval_profiles import DEFAULT_PROFILES, RetrievalProfile, build_profiles
from ragline.config.settings import Settings

__all__ = [
    "DEFAULT_PROFILES",
    "RetrievalProfile",
    "Settings",
    "build_profiles",
    "load_config",
]
