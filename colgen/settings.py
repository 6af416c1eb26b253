"""
Collider settings - project-level configuration for collider generation.

Settings are stored as JSON, by default in project_settings/colliders.json.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from colgen import log
from colgen.errors import ColliderError
from colgen.types import ColliderConfig

SETTINGS_DIR = "project_settings"
SETTINGS_FILE = "colliders.json"

PathLike = Union[str, Path]


def settings_path(project_path: PathLike) -> Path:
    """Path to the collider settings file of a project."""
    return Path(project_path) / SETTINGS_DIR / SETTINGS_FILE


def load_config(path: PathLike) -> ColliderConfig:
    """
    Load configuration from a JSON file.

    A missing, unreadable or invalid file yields the default configuration.
    """
    path = Path(path)
    if not path.exists():
        return ColliderConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        config = ColliderConfig.from_dict(data)
        log.info(f"[ColliderSettings] Loaded from {path}")
        return config
    except (OSError, ValueError, TypeError, ColliderError) as e:
        log.error(f"[ColliderSettings] Failed to load settings: {e}")
        return ColliderConfig()


def save_config(config: ColliderConfig, path: PathLike) -> bool:
    """Save configuration to a JSON file. Returns False on failure."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
        log.info(f"[ColliderSettings] Saved to {path}")
        return True
    except OSError as e:
        log.error(f"[ColliderSettings] Failed to save settings: {e}")
        return False
