"""Logging setup for the rendezvous service and its client.

Everything the package logs goes through the ``rendezvous`` logger tree
(``get_logger("peer_registry")`` -> ``rendezvous.peer_registry``). Peers
re-register every few seconds, so uvicorn's per-request access lines are kept
at WARNING unless ``ACCESS_LOG_LEVEL`` says otherwise.

Environment:
    LOG_LEVEL: console and root level (default INFO)
    LOG_DIR: directory for rendezvous.log and errors.log (default ./logs)
    ACCESS_LOG_LEVEL: level for uvicorn.access (default WARNING)
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict

ROOT_LOGGER_NAME = "rendezvous"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def get_log_level() -> str:
    """Console log level from LOG_LEVEL, INFO by default."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_dir() -> Path:
    return Path(os.getenv("LOG_DIR", "logs"))


def _file_handler(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "file",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf8",
    }


def _library_logger(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console", "file"], "propagate": False}


def get_logging_config() -> Dict[str, Any]:
    """Build the dictConfig for the service, creating the log directory."""
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_level = get_log_level()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                "datefmt": "%H:%M:%S",
            },
            "file": {
                "format": "%(asctime)s %(levelname)s %(name)s "
                "[%(module)s.%(funcName)s:%(lineno)d] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "console",
                "stream": "ext://sys.stdout",
            },
            "file": _file_handler(log_dir / "rendezvous.log", "DEBUG"),
            "error_file": _file_handler(log_dir / "errors.log", "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER_NAME: {
                "level": "DEBUG",
                "handlers": ["console", "file", "error_file"],
                "propagate": False,
            },
            "uvicorn.error": _library_logger("INFO"),
            "uvicorn.access": _library_logger(
                os.getenv("ACCESS_LOG_LEVEL", "WARNING").upper()
            ),
            "httpx": _library_logger("WARNING"),
            "redis": _library_logger("WARNING"),
        },
        "root": {
            "level": log_level,
            "handlers": ["console", "file"],
        },
    }


def setup_logging() -> logging.Logger:
    """Apply the logging config and return the ``rendezvous`` logger."""
    logging.config.dictConfig(get_logging_config())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.info(f"Logging to {get_log_dir()} at level {get_log_level()}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger of ``rendezvous`` for one module."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
