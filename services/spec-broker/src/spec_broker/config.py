"""
Configuration settings for Spec-Broker.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DependencyStrategy = Literal["last_declared", "highest_version"]


class RegistrySettings(BaseSettings):
    """Registry configuration loaded from SPEC_BROKER_* environment variables."""

    # Attach tracebacks to rating/invoke/load failure logs
    debug: bool = False

    # Output type mismatch raises ArgumentTypeError instead of logging
    strict_output: bool = False

    # Which candidate fills a dependency when several providers match
    dependency_strategy: DependencyStrategy = "last_declared"

    # Search roots: base dirs are joined onto every sys.path entry
    base_dirs: list[str] = Field(default_factory=list)
    plugin_dirs: list[str] = Field(default_factory=list)

    # Blacklists (canonical names, and path suffixes of provider modules)
    blacklist: list[str] = Field(default_factory=list)
    blacklist_paths: list[str] = Field(default_factory=list)
    blacklist_file: str | None = None

    model_config = {"env_prefix": "SPEC_BROKER_", "case_sensitive": False}


class BlacklistConfig(BaseModel):
    """User-maintained blacklist, usually read from a YAML file."""

    providers: list[str] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)


def load_blacklist_file(path: str) -> BlacklistConfig:
    """
    Load a blacklist from YAML.

    File format:
    ```yaml
    providers:
      - "PNG Format-1.0.1"
    paths:
      - "broken/png_format.py"
    ```
    A missing or unreadable file yields an empty blacklist.
    """
    blacklist_path = Path(path)
    if not blacklist_path.exists():
        logger.warning(f"Blacklist file not found: {path}, ignoring")
        return BlacklistConfig()

    try:
        with blacklist_path.open() as f:
            data = yaml.safe_load(f) or {}
        config = BlacklistConfig(
            providers=[str(p) for p in data.get("providers", []) or []],
            paths=[str(p) for p in data.get("paths", []) or []],
        )
    except Exception as e:
        logger.error(f"Failed to load blacklist file: {e}")
        return BlacklistConfig()

    logger.info(
        f"Loaded blacklist from {path}: {len(config.providers)} providers, "
        f"{len(config.paths)} paths"
    )
    return config
