"""
Tests for application configuration loading
"""

import pytest

from dispatch_admin.config.config_manager import (
    CONFIG_TEMPLATE, AppConfig, ConfigError, ConfigManager, EnvironmentType,
    LoggingConfig, ScheduleSettings, SecurityConfig, load_config
)


ENV_VARS = [
    "DISPATCH_ENVIRONMENT", "DISPATCH_CONFIG_DIR", "DISPATCH_ENCRYPTION_KEY", "DISPATCH_KDF_SALT",
    "DISPATCH_KDF_ITERATIONS", "DISPATCH_SESSION_TTL_HOURS", "DISPATCH_PROBE_DRIVER",
    "DISPATCH_PROBE_CONNECT_TIMEOUT_MS", "DISPATCH_PROBE_REQUEST_TIMEOUT_MS", "DISPATCH_TIMEZONE",
    "DISPATCH_API_HOST", "DISPATCH_API_PORT", "DISPATCH_CORS_ORIGINS", "DISPATCH_LOG_LEVEL",
    "DISPATCH_LOG_FILE_PATH", "DISPATCH_LOG_FILE_ENABLED", "CONFIG_ENCRYPTION_KEY",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def write_yaml(tmp_path, content):
    path = tmp_path / "dispatch-admin.yaml"
    path.write_text(content, encoding='utf-8')
    return str(path)


class TestConfigManager:

    def test_missing_encryption_key_is_an_error(self):
        with pytest.raises(ConfigError, match="Encryption key is required"):
            ConfigManager().load_config()

    def test_environment_only(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_ENCRYPTION_KEY", "env-secret")
        monkeypatch.setenv("DISPATCH_API_PORT", "9090")
        monkeypatch.setenv("DISPATCH_CORS_ORIGINS", "https://admin.example.com, https://ops.example.com")
        monkeypatch.setenv("DISPATCH_LOG_FILE_ENABLED", "false")

        config = ConfigManager().load_config()

        assert config.environment == EnvironmentType.DEVELOPMENT
        assert config.security.encryption_key == "env-secret"
        assert config.api.port == 9090
        assert config.api.cors_origins == ["https://admin.example.com", "https://ops.example.com"]
        assert config.logging.file_enabled is False

    def test_yaml_file_with_environment_override(self, tmp_path, monkeypatch):
        config_file = write_yaml(tmp_path, """
environment: production
security:
  encryption_key: file-secret
storage:
  config_dir: /var/lib/dispatch
probe:
  driver: mssql+aioodbc
  connect_timeout_ms: 2000
""")
        monkeypatch.setenv("DISPATCH_ENCRYPTION_KEY", "env-secret")

        config = ConfigManager(config_file).load_config()

        assert config.environment == EnvironmentType.PRODUCTION
        assert config.security.encryption_key == "env-secret"
        assert config.storage.service_status_path.as_posix() == "/var/lib/dispatch/service.status"
        assert config.probe.connect_timeout_ms == 2000
        assert config.probe.request_timeout_ms == 10000

    def test_discovers_file_in_working_directory(self, tmp_path):
        write_yaml(tmp_path, "security:\n  encryption_key: discovered\n")

        config = load_config()

        assert config.security.encryption_key == "discovered"

    def test_legacy_key_variable_still_accepted(self, monkeypatch):
        monkeypatch.setenv("CONFIG_ENCRYPTION_KEY", "legacy-secret")

        config = ConfigManager().load_config()

        assert config.security.encryption_key == "legacy-secret"

    def test_invalid_integer_in_environment(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_ENCRYPTION_KEY", "env-secret")
        monkeypatch.setenv("DISPATCH_API_PORT", "eighty")

        with pytest.raises(ConfigError, match="api.port"):
            ConfigManager().load_config()

    def test_unknown_environment(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_ENCRYPTION_KEY", "env-secret")
        monkeypatch.setenv("DISPATCH_ENVIRONMENT", "staging")

        with pytest.raises(ConfigError, match="Unknown environment"):
            ConfigManager().load_config()

    def test_unknown_section_key(self, tmp_path):
        config_file = write_yaml(tmp_path, "security:\n  encryption_key: x\n  shoe_size: 42\n")

        with pytest.raises(ConfigError, match="Invalid configuration structure"):
            ConfigManager(config_file).load_config()

    def test_non_mapping_file(self, tmp_path):
        config_file = write_yaml(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigError):
            ConfigManager(config_file).load_config()

    def test_get_config_before_load(self):
        with pytest.raises(ConfigError, match="not loaded"):
            ConfigManager().get_config()

    def test_template_loads(self, tmp_path, monkeypatch):
        config_file = write_yaml(tmp_path, CONFIG_TEMPLATE)
        monkeypatch.setenv("DISPATCH_ENCRYPTION_KEY", "env-secret")

        config = ConfigManager(config_file).load_config()

        assert config.probe.driver_options['driver'] == "ODBC Driver 18 for SQL Server"
        assert config.api.port == 8080


class TestSectionValidation:

    def test_unknown_timezone(self):
        with pytest.raises(ConfigError, match="timezone"):
            ScheduleSettings(timezone="Mars/Olympus_Mons").validate()

    def test_schedule_timezone_resolves(self):
        config = AppConfig(security=SecurityConfig(encryption_key="k"),
                           schedule=ScheduleSettings(timezone="Europe/Berlin"))
        config.validate()

        assert str(config.schedule_tz) == "Europe/Berlin"

    def test_bad_log_level(self):
        with pytest.raises(ConfigError):
            LoggingConfig(level="LOUD").validate()

    def test_zero_kdf_iterations(self):
        with pytest.raises(ConfigError):
            SecurityConfig(encryption_key="k", kdf_iterations=0).validate()
