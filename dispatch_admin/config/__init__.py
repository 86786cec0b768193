"""
Application configuration
"""

from .config_manager import (
    AppConfig,
    ConfigError,
    ConfigManager,
    EnvironmentType,
    load_config,
)
