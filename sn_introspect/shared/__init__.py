# Shared utilities package
from .config import (
    Config,
    ConfigError,
    ConnectionInfo,
    Settings,
    get_config,
    init_config,
    parse_connection_string,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConnectionInfo",
    "Settings",
    "get_config",
    "init_config",
    "parse_connection_string",
]
