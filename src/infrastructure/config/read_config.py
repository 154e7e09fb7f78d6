"""module for reading configuration"""

import json
import os
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    model_validator,
)

from src.common.singleton_meta import SingletonMeta
from src.infrastructure.logging.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = "config.json"


class StorageConfigSchema(BaseModel):
    """Config schema for the peer entry store"""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Entry store backend"
    )
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(gt=0, le=65535, default=6379, description="Redis port")
    db: int = Field(ge=0, default=0, description="Redis database index")
    password: str | None = Field(
        default_factory=lambda: os.getenv("REDIS_PASSWORD", None),
        description="Redis password",
    )
    key_prefix: str = Field(
        default="peer:registry", min_length=1, description="Redis key prefix"
    )
    socket_timeout: float = Field(
        gt=0, default=5.0, description="Redis socket timeout in seconds"
    )


class ConfigSchema(BaseModel):
    """Config Schema for validation"""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(
        default_factory=lambda: os.getenv("UVICORN_HOST", "0.0.0.0"),
        description="uvicorn server host/IP address",
    )
    port: int = Field(
        gt=0,
        le=65535,
        default_factory=lambda: int(os.getenv("PORT") or "3000"),
        description="uvicorn server port",
    )
    peer_ttl_seconds: float = Field(
        gt=0,
        default=25.0,
        description="Seconds a registration stays live after its last refresh",
    )
    prune_on_list: bool = Field(
        default=False,
        description="Drop stale index entries while listing peers",
    )
    sweep_interval_seconds: int = Field(
        ge=0,
        default=0,
        description="Background sweep interval in seconds, 0 disables it",
    )
    registry_endpoint: HttpUrl = Field(
        default_factory=lambda: HttpUrl("http://localhost:3000"),
        description="Rendezvous service endpoint used by clients",
    )
    announce_interval_seconds: float = Field(
        gt=0,
        default=10.0,
        description="How often a client re-registers its address",
    )
    storage: StorageConfigSchema = Field(default_factory=StorageConfigSchema)

    @model_validator(mode="after")
    def check_announce_interval(self) -> "ConfigSchema":
        """A peer must re-register before its entry lapses."""
        if self.announce_interval_seconds >= self.peer_ttl_seconds:
            raise ValueError(
                "announce_interval_seconds must be shorter than peer_ttl_seconds"
            )
        return self


class ConfigReader(metaclass=SingletonMeta):
    """Class for loading user configuration"""

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return

        self._initialized = True

        explicit_path = os.environ.get("CONFIG_PATH")
        path = explicit_path or DEFAULT_CONFIG_PATH

        if not os.path.exists(path):
            if explicit_path:
                raise FileNotFoundError(f"Config file not found at {path}")
            logger.info(f"No config file at {path}, using defaults")
            self.config = ConfigSchema()
            return

        with open(path, "r") as config_file:
            try:
                config_data = json.load(config_file)
            except json.JSONDecodeError as ex:
                raise json.JSONDecodeError(
                    msg=(
                        "Config json failed loading with the "
                        f"following exception: {ex}"
                    ),
                    doc=ex.doc,
                    pos=ex.pos,
                ) from ex

            try:
                self.config = ConfigSchema(**config_data)
            except ValidationError as err:
                logger.error(f"Invalid configuration in {path}: {err}")
                raise

        logger.info(f"Configuration loaded from {path}")


def get_config() -> ConfigReader:
    """Get the global configuration instance."""
    return ConfigReader()
