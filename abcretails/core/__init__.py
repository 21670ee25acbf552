"""Core module initialization."""

from .config_manager import ConfigManager, AppConfig
from .logging_config import setup_logging, get_logger

__all__ = [
    "ConfigManager",
    "AppConfig",
    "setup_logging",
    "get_logger",
]
