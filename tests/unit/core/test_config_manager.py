"""
Tests for ConfigManager.
"""

import json
import os

import pytest
import yaml
from pydantic import ValidationError

from abcretails.core.config_manager import (
    AppConfig,
    ConfigManager,
    LogLevel,
    REDACTED,
    StorageBackendType,
    redact_config,
)

CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=abcretails;"
    "AccountKey=c2VjcmV0;EndpointSuffix=core.windows.net"
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove any ambient configuration from the environment."""
    for name in list(os.environ):
        if name.startswith("ABCRETAILS_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("AZURE_STORAGE_CONNECTION_STRING", raising=False)


MEMORY = {"storage": {"backend": "memory"}}


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_load_defaults_with_memory_backend(self):
        """Test loading default configuration."""
        config = ConfigManager().load(cli_overrides=MEMORY)

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8000
        assert config.logging.level == LogLevel.INFO
        assert config.storage.backend == StorageBackendType.MEMORY
        assert config.storage.containers.product_images == "product-images"
        assert config.storage.containers.payment_proofs == "payment-proofs"
        assert config.storage.queues.order_notifications == "order-notifications"
        assert config.storage.queues.stock_updates == "stock-updates"
        assert config.storage.shares.contracts == "contracts"
        assert config.storage.shares.payments_directory == "payments"

    def test_azure_backend_requires_connection_string(self):
        with pytest.raises(ValidationError) as exc_info:
            ConfigManager().load()

        assert "Azure storage connection string not found" in str(exc_info.value)

    def test_connection_string_from_env(self, monkeypatch):
        monkeypatch.setenv("ABCRETAILS_STORAGE_CONNECTION_STRING", CONNECTION_STRING)

        config = ConfigManager().load()

        assert config.storage.backend == StorageBackendType.AZURE
        assert config.storage.connection_string == CONNECTION_STRING

    def test_azure_connection_string_fallback(self, monkeypatch):
        monkeypatch.setenv("AZURE_STORAGE_CONNECTION_STRING", CONNECTION_STRING)

        config = ConfigManager().load()

        assert config.storage.connection_string == CONNECTION_STRING

    def test_load_from_yaml_file(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({
            "server": {"host": "127.0.0.1", "port": 9000},
            "logging": {"level": "DEBUG"},
            "storage": {"backend": "memory", "queues": {"stock_updates": "stock-v2"}},
        }))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9000
        assert config.logging.level == LogLevel.DEBUG
        assert config.storage.queues.stock_updates == "stock-v2"
        assert config.storage.queues.order_notifications == "order-notifications"

    def test_load_from_json_file(self, tmp_path):
        """Test loading configuration from JSON file."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "server": {"host": "localhost", "port": 7000},
            "storage": {"backend": "memory"},
        }))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.server.host == "localhost"
        assert config.server.port == 7000

    def test_load_from_env_variables(self, monkeypatch):
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("ABCRETAILS_HOST", "192.168.1.1")
        monkeypatch.setenv("ABCRETAILS_PORT", "5000")
        monkeypatch.setenv("ABCRETAILS_LOG_LEVEL", "warning")
        monkeypatch.setenv("ABCRETAILS_STORAGE_BACKEND", "MEMORY")

        config = ConfigManager().load()

        assert config.server.host == "192.168.1.1"
        assert config.server.port == 5000
        assert config.logging.level == LogLevel.WARNING
        assert config.storage.backend == StorageBackendType.MEMORY

    def test_configuration_precedence(self, tmp_path, monkeypatch):
        """Test configuration precedence: CLI > ENV > FILE > DEFAULTS."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({
            "server": {"host": "file-host", "port": 1111},
            "storage": {"backend": "memory"},
        }))
        monkeypatch.setenv("ABCRETAILS_HOST", "env-host")

        config = ConfigManager().load(
            config_file=str(config_file),
            cli_overrides={"server": {"port": 2222}},
        )

        assert config.server.port == 2222
        assert config.server.host == "env-host"

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            ConfigManager().load(cli_overrides={"storage": {"backend": "s3"}})

    def test_file_not_found(self):
        """Test that missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(config_file="/nonexistent/config.yaml")

    def test_unsupported_file_format(self, tmp_path):
        """Test that unsupported file format raises ValueError."""
        config_file = tmp_path / "config.txt"
        config_file.write_text("invalid config")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager().load(config_file=str(config_file))

        assert "Unsupported config file format" in str(exc_info.value)

    def test_get_config_before_load(self):
        """Test that getting config before loading raises RuntimeError."""
        with pytest.raises(RuntimeError) as exc_info:
            ConfigManager().get_config()

        assert "Configuration not loaded" in str(exc_info.value)

    def test_get_config_after_load(self):
        manager = ConfigManager()
        config = manager.load(cli_overrides=MEMORY)

        assert manager.get_config() is config

    def test_reload_uses_same_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"server": {"port": 1}, "storage": {"backend": "memory"}}))
        manager = ConfigManager()
        manager.load(config_file=str(config_file))

        config_file.write_text(yaml.dump({"server": {"port": 2}, "storage": {"backend": "memory"}}))

        assert manager.reload().server.port == 2


class TestRedaction:

    def test_connection_string_is_redacted(self):
        config = AppConfig(storage={"backend": "azure", "connection_string": CONNECTION_STRING})

        dumped = redact_config(config)

        assert dumped["storage"]["connection_string"] == REDACTED
        assert "c2VjcmV0" not in json.dumps(dumped)

    def test_active_configuration_log_is_redacted(self, monkeypatch, caplog):
        monkeypatch.setenv("ABCRETAILS_STORAGE_CONNECTION_STRING", CONNECTION_STRING)

        with caplog.at_level("INFO", logger="abcretails.core.config_manager"):
            ConfigManager().load()

        assert "Active configuration" in caplog.text
        assert "c2VjcmV0" not in caplog.text
