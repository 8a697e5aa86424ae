from .config_base import CONFIG_BASE, DEFAULT_CFG, load_config, save_config

__all__ = ["CONFIG_BASE", "DEFAULT_CFG", "load_config", "save_config"]
