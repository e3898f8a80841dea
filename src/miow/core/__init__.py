"""Miow core modules."""

from miow.core.config import get_api_base_url, get_config_path, get_timeout, load_config, save_config

__all__ = ["load_config", "save_config", "get_config_path", "get_api_base_url", "get_timeout"]
