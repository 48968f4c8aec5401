"""Shared utilities: environment configuration, structured logging, shutdown."""

from .config import (
    BroadcasterConfig,
    Config,
    DataConfig,
    SparkConfig,
    get_env_bool,
    get_env_float,
    get_env_int,
    get_env_list,
    get_env_str,
)
from .logging import StructuredFormatter, get_logger, setup_logging
from .shutdown import GracefulShutdown

__all__ = [
    "BroadcasterConfig",
    "Config",
    "DataConfig",
    "SparkConfig",
    "get_env_bool",
    "get_env_float",
    "get_env_int",
    "get_env_list",
    "get_env_str",
    "StructuredFormatter",
    "get_logger",
    "setup_logging",
    "GracefulShutdown",
]
