"""pr-welcome: a GitHub App that comments on newly opened pull requests."""

__version__ = "0.1.0"

from .config import AppConfig, ConfigError, load_config

__all__ = ["AppConfig", "ConfigError", "load_config", "__version__"]
