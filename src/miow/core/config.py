"""Configuration management for Miow."""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Global config directory
MIOW_HOME = Path.home() / ".miow"
GLOBAL_CONFIG_FILE = MIOW_HOME / "config.json"

# Project-level config (".miow/" also holds the backend's index, keep apart)
PROJECT_CONFIG_DIR = ".miow"
PROJECT_CONFIG_FILE = "client.json"

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 300.0


def get_config_path() -> Path:
    """Get the path to the global config file."""
    return GLOBAL_CONFIG_FILE


def get_project_config_path() -> Path | None:
    """Get the path to the project-level config file, if it exists."""
    project_config = Path.cwd() / PROJECT_CONFIG_DIR / PROJECT_CONFIG_FILE
    if project_config.exists():
        return project_config
    return None


def ensure_config_dir():
    """Ensure the global config directory exists."""
    MIOW_HOME.mkdir(parents=True, exist_ok=True)


def load_config() -> dict[str, Any]:
    """Load configuration from global and project-level configs.

    Precedence (highest first): environment, project config, global config.
    A .env file in the working directory is loaded into the environment.
    """
    load_dotenv()
    config: dict[str, Any] = {}

    # Load global config
    if GLOBAL_CONFIG_FILE.exists():
        with open(GLOBAL_CONFIG_FILE) as f:
            config = json.load(f)

    # Merge project-level config
    project_config_path = get_project_config_path()
    if project_config_path:
        with open(project_config_path) as f:
            project_config = json.load(f)
            config = {**config, **project_config}

    # Also check environment variables
    if os.environ.get("MIOW_API_URL"):
        config["backend_url"] = os.environ["MIOW_API_URL"]

    if os.environ.get("MIOW_TIMEOUT"):
        config["timeout"] = os.environ["MIOW_TIMEOUT"]

    return config


def save_config(config: dict[str, Any], project_level: bool = False):
    """Save configuration.

    Args:
        config: Configuration dictionary to save
        project_level: If True, save to project-level config; otherwise global
    """
    if project_level:
        project_dir = Path.cwd() / PROJECT_CONFIG_DIR
        project_dir.mkdir(parents=True, exist_ok=True)
        config_path = project_dir / PROJECT_CONFIG_FILE
    else:
        ensure_config_dir()
        config_path = GLOBAL_CONFIG_FILE

    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)


def get_api_base_url(config: dict[str, Any] | None = None) -> str:
    """Get the API base URL for the Miow backend."""
    config = load_config() if config is None else config
    return config.get("backend_url") or DEFAULT_API_URL


def get_timeout(config: dict[str, Any] | None = None) -> float:
    """Get the stream/request timeout in seconds."""
    config = load_config() if config is None else config
    try:
        return float(config.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT
