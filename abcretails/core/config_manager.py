"""
Configuration management for ABC Retails.

Handles loading, validation, and access to configuration settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

import yaml
from pydantic import BaseModel, Field, ValidationError, ConfigDict, model_validator

logger = logging.getLogger(__name__)

REDACTED = "***REDACTED***"


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackendType(str, Enum):
    """Supported storage backend types."""
    AZURE = "azure"
    MEMORY = "memory"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    file: Optional[str] = None
    rotation_size: str = "10MB"
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'abcretails.storage': 'DEBUG'}"
    )


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000


class ContainerSettings(BaseModel):
    """Blob container names used by the application."""
    product_images: str = "product-images"
    payment_proofs: str = "payment-proofs"


class QueueSettings(BaseModel):
    """Queue names used by the application."""
    order_notifications: str = "order-notifications"
    stock_updates: str = "stock-updates"


class ShareSettings(BaseModel):
    """File share and directory names used by the application."""
    contracts: str = "contracts"
    payments_directory: str = "payments"


class StorageConfig(BaseModel):
    """Storage backend configuration."""
    backend: StorageBackendType = StorageBackendType.AZURE
    connection_string: Optional[str] = None
    containers: ContainerSettings = Field(default_factory=ContainerSettings)
    queues: QueueSettings = Field(default_factory=QueueSettings)
    shares: ShareSettings = Field(default_factory=ShareSettings)

    @model_validator(mode="after")
    def require_connection_string(self) -> "StorageConfig":
        """Azure backend cannot start without a connection string."""
        if self.backend == StorageBackendType.AZURE and not self.connection_string:
            raise ValueError("Azure storage connection string not found")
        return self

    model_config = ConfigDict(use_enum_values=True)


class AppConfig(BaseModel):
    """Main ABC Retails configuration schema."""

    server: ServerConfig = Field(default_factory=ServerConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Manages ABC Retails configuration loading and validation.

    Configuration precedence (highest to lowest):
    1. CLI arguments
    2. Environment variables (ABCRETAILS_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    def __init__(self):
        self._config: Optional[AppConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        cli_overrides: Optional[Dict[str, Any]] = None
    ) -> AppConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            cli_overrides: Dictionary of CLI argument overrides

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        logger.info("Loading ABC Retails configuration")

        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.info(f"Applied {len(env_config)} environment variable overrides")

        if cli_overrides:
            config_dict = self._merge_configs(config_dict, cli_overrides)
            logger.info(f"Applied {len(cli_overrides)} CLI argument overrides")

        try:
            self._config = AppConfig(**config_dict)
            logger.info("Configuration validated successfully")
            self._log_configuration()
            return self._config
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        if host := os.getenv("ABCRETAILS_HOST"):
            config.setdefault("server", {})["host"] = host
        if port := os.getenv("ABCRETAILS_PORT"):
            config.setdefault("server", {})["port"] = int(port)

        if log_level := os.getenv("ABCRETAILS_LOG_LEVEL"):
            config.setdefault("logging", {})["level"] = log_level.upper()
        if log_file := os.getenv("ABCRETAILS_LOG_FILE"):
            config.setdefault("logging", {})["file"] = log_file
        if log_format := os.getenv("ABCRETAILS_LOG_FORMAT"):
            config.setdefault("logging", {})["format"] = log_format.lower()

        if backend_type := os.getenv("ABCRETAILS_STORAGE_BACKEND"):
            config.setdefault("storage", {})["backend"] = backend_type.lower()
        connection_string = (
            os.getenv("ABCRETAILS_STORAGE_CONNECTION_STRING")
            or os.getenv("AZURE_STORAGE_CONNECTION_STRING")
        )
        if connection_string:
            config.setdefault("storage", {})["connection_string"] = connection_string

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _log_configuration(self) -> None:
        """Log the loaded configuration (with sensitive data redacted)."""
        if not self._config:
            return

        logger.info(f"Active configuration: {json.dumps(redact_config(self._config), indent=2)}")

    def get_config(self) -> AppConfig:
        """
        Get the loaded configuration.

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> AppConfig:
        """Reload configuration from the same sources."""
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)


def redact_config(config: AppConfig) -> Dict[str, Any]:
    """Dump configuration as a dict with the storage connection string hidden."""
    config_dict = config.model_dump(mode="json")
    if config_dict["storage"].get("connection_string"):
        config_dict["storage"]["connection_string"] = REDACTED
    return config_dict
