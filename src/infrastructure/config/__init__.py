"""init for configs package"""

from src.infrastructure.config.read_config import (
    ConfigReader,
    ConfigSchema,
    StorageConfigSchema,
    get_config,
)

__all__ = [
    "ConfigReader",
    "ConfigSchema",
    "StorageConfigSchema",
    "get_config",
]
