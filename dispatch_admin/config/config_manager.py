"""
Configuration Manager for the dispatch admin backend
YAML file + environment variables, validated dataclasses
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from dispatch_admin.core.config_store import DEFAULT_KDF_ITERATIONS, DEFAULT_KDF_SALT


class ConfigError(Exception):
    """Configuration-related error"""
    pass


class EnvironmentType(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass
class StorageConfig:
    """Where the encrypted config files and the status file live"""
    config_dir: str = "config"

    @property
    def database_config_path(self) -> Path:
        return Path(self.config_dir) / "database.config"

    @property
    def email_config_path(self) -> Path:
        return Path(self.config_dir) / "email.config"

    @property
    def service_status_path(self) -> Path:
        return Path(self.config_dir) / "service.status"

    def validate(self):
        if not self.config_dir:
            raise ConfigError("Storage config_dir is required")


@dataclass
class SecurityConfig:
    """Security configuration"""
    encryption_key: Optional[str] = None
    kdf_salt: str = DEFAULT_KDF_SALT
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    session_ttl_hours: int = 24

    def validate(self):
        """Validate security configuration; the encryption key has no default"""
        if not self.encryption_key:
            raise ConfigError(
                "Encryption key is required: set security.encryption_key "
                "or the DISPATCH_ENCRYPTION_KEY environment variable"
            )
        if not self.kdf_salt:
            raise ConfigError("KDF salt must not be empty")
        if self.kdf_iterations < 1:
            raise ConfigError("KDF iterations must be at least 1")
        if self.session_ttl_hours < 1:
            raise ConfigError("Session TTL must be at least 1 hour")


def _default_driver_options() -> Dict[str, Any]:
    return {
        'driver': 'ODBC Driver 18 for SQL Server',
        'Encrypt': 'yes',
        'TrustServerCertificate': 'yes',
    }


@dataclass
class ProbeConfig:
    """Connectivity probe configuration"""
    driver: str = "mssql+aioodbc"
    driver_options: Dict[str, Any] = field(default_factory=_default_driver_options)
    connect_timeout_ms: int = 10000
    request_timeout_ms: int = 10000

    def validate(self):
        """Validate probe configuration"""
        if not self.driver:
            raise ConfigError("Probe driver is required")
        if self.connect_timeout_ms < 1 or self.request_timeout_ms < 1:
            raise ConfigError("Probe timeouts must be positive milliseconds")


@dataclass
class ScheduleSettings:
    """Clock used when evaluating the dispatch window"""
    timezone: Optional[str] = None

    def validate(self):
        if self.timezone:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ConfigError(f"Unknown schedule timezone: {self.timezone}")


@dataclass
class APIConfig:
    """API configuration"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def validate(self):
        """Validate API configuration"""
        if not (1 <= self.port <= 65535):
            raise ConfigError("API port must be between 1 and 65535")


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = True
    file_path: str = "logs/dispatch-admin.log"
    file_max_size: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5
    console_enabled: bool = True

    def validate(self):
        """Validate logging configuration"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigError(f"Log level must be one of: {valid_levels}")
        if self.file_max_size < 1024:
            raise ConfigError("Log file max size must be at least 1KB")


@dataclass
class AppConfig:
    """Main configuration class"""
    environment: EnvironmentType = EnvironmentType.DEVELOPMENT
    storage: StorageConfig = field(default_factory=StorageConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self):
        """Validate entire configuration"""
        self.storage.validate()
        self.security.validate()
        self.probe.validate()
        self.schedule.validate()
        self.api.validate()
        self.logging.validate()

        if self.environment == EnvironmentType.PRODUCTION:
            if "*" in self.api.cors_origins:
                logging.warning("Wildcard CORS origins are not recommended in production")

    @property
    def schedule_tz(self):
        if not self.schedule.timezone:
            return None
        return ZoneInfo(self.schedule.timezone)


class ConfigManager:
    """Configuration manager with YAML loading, env overrides and validation"""

    LEGACY_KEY_VARIABLE = "CONFIG_ENCRYPTION_KEY"

    def __init__(self, config_file: Optional[str] = None,
                 env_prefix: str = "DISPATCH_"):
        self.config_file = config_file or self._find_config_file()
        self.env_prefix = env_prefix
        self.logger = logging.getLogger(__name__)
        self._config: Optional[AppConfig] = None

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations"""
        possible_files = [
            "dispatch-admin.yaml",
            "dispatch-admin.yml",
            "config/dispatch-admin.yaml",
            "config/dispatch-admin.yml",
            "/etc/dispatch-admin/config.yaml",
        ]

        for file_path in possible_files:
            if Path(file_path).exists():
                return file_path

        return None

    def load_config(self) -> AppConfig:
        """Load and validate configuration from file and environment"""
        load_dotenv()

        try:
            config_dict: Dict[str, Any] = {}

            if self.config_file and Path(self.config_file).exists():
                config_dict = self._load_from_file(self.config_file)
                self.logger.info(f"Loaded configuration from {self.config_file}")

            env_overrides = self._load_from_environment()
            config_dict = self._deep_merge(config_dict, env_overrides)

            self._config = self._dict_to_config(config_dict)
            self._config.validate()

            self.logger.info(f"Configuration loaded successfully for environment: {self._config.environment.value}")
            return self._config

        except ConfigError as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise
        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise ConfigError(f"Configuration loading failed: {e}")

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except IOError as e:
            raise ConfigError(f"Cannot read config file: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {file_path} must contain a mapping")
        return data

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config_dict: Dict[str, Any] = {}

        env_mappings = {
            f"{self.env_prefix}ENVIRONMENT": "environment",
            f"{self.env_prefix}CONFIG_DIR": "storage.config_dir",
            f"{self.env_prefix}ENCRYPTION_KEY": "security.encryption_key",
            f"{self.env_prefix}KDF_SALT": "security.kdf_salt",
            f"{self.env_prefix}KDF_ITERATIONS": "security.kdf_iterations",
            f"{self.env_prefix}SESSION_TTL_HOURS": "security.session_ttl_hours",
            f"{self.env_prefix}PROBE_DRIVER": "probe.driver",
            f"{self.env_prefix}PROBE_CONNECT_TIMEOUT_MS": "probe.connect_timeout_ms",
            f"{self.env_prefix}PROBE_REQUEST_TIMEOUT_MS": "probe.request_timeout_ms",
            f"{self.env_prefix}TIMEZONE": "schedule.timezone",
            f"{self.env_prefix}API_HOST": "api.host",
            f"{self.env_prefix}API_PORT": "api.port",
            f"{self.env_prefix}CORS_ORIGINS": "api.cors_origins",
            f"{self.env_prefix}LOG_LEVEL": "logging.level",
            f"{self.env_prefix}LOG_FILE_PATH": "logging.file_path",
            f"{self.env_prefix}LOG_FILE_ENABLED": "logging.file_enabled",
        }

        legacy_key = os.getenv(self.LEGACY_KEY_VARIABLE)
        if legacy_key and not os.getenv(f"{self.env_prefix}ENCRYPTION_KEY"):
            self.logger.warning(f"{self.LEGACY_KEY_VARIABLE} is deprecated, use {self.env_prefix}ENCRYPTION_KEY")
            self._set_nested_value(config_dict, "security.encryption_key", legacy_key)

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                value = self._convert_env_value(value, config_path)
                self._set_nested_value(config_dict, config_path, value)

        return config_dict

    def _convert_env_value(self, value: str, config_path: str) -> Any:
        """Convert environment variable string to appropriate type"""
        if config_path.endswith('enabled'):
            return value.lower() in ('true', '1', 'yes', 'on')

        if config_path.endswith(('port', '_ms', 'iterations', 'hours')):
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"Invalid integer value for {config_path}: {value}")

        if config_path.endswith('cors_origins'):
            return [item.strip() for item in value.split(',') if item.strip()]

        return value

    def _set_nested_value(self, config_dict: Dict[str, Any], path: str, value: Any):
        """Set nested dictionary value using dot notation"""
        keys = path.split('.')
        current = config_dict

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> AppConfig:
        """Convert dictionary to configuration object"""
        try:
            env_str = config_dict.get('environment', 'development')
            try:
                environment = EnvironmentType(str(env_str).lower())
            except ValueError:
                raise ConfigError(f"Unknown environment: {env_str}")

            return AppConfig(
                environment=environment,
                storage=StorageConfig(**config_dict.get('storage', {})),
                security=SecurityConfig(**config_dict.get('security', {})),
                probe=ProbeConfig(**config_dict.get('probe', {})),
                schedule=ScheduleSettings(**config_dict.get('schedule', {})),
                api=APIConfig(**config_dict.get('api', {})),
                logging=LoggingConfig(**config_dict.get('logging', {})),
            )

        except TypeError as e:
            raise ConfigError(f"Invalid configuration structure: {e}")

    def get_config(self) -> AppConfig:
        """Get current configuration"""
        if not self._config:
            raise ConfigError("Configuration not loaded")
        return self._config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from the given or discovered file"""
    return ConfigManager(config_file).load_config()


CONFIG_TEMPLATE = """
# dispatch-admin configuration
environment: development

storage:
  config_dir: config

security:
  # encryption_key: set here or via DISPATCH_ENCRYPTION_KEY
  session_ttl_hours: 24

probe:
  driver: mssql+aioodbc
  driver_options:
    driver: ODBC Driver 18 for SQL Server
    Encrypt: "yes"
    TrustServerCertificate: "yes"
  connect_timeout_ms: 10000
  request_timeout_ms: 10000

schedule:
  timezone: null

api:
  host: 0.0.0.0
  port: 8080
  cors_origins: ["*"]

logging:
  level: INFO
  file_enabled: true
  file_path: logs/dispatch-admin.log
  file_max_size: 10485760  # 10MB
  file_backup_count: 5
  console_enabled: true
"""
