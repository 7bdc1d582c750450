"""Configuration module."""

from matterhook.config.schema import (
    Config,
    apply_env,
    load_config,
    save_config,
    get_config_path,
)

__all__ = ["Config", "apply_env", "load_config", "save_config", "get_config_path"]
