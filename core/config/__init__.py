"""
Runtime Configuration Module

Provides configuration loading and management for claimforge.
"""

from .runtime import (
    CompilerConfig,
    LedgerConfig,
    LoggingConfig,
    PackerConfig,
    RuntimeConfig,
    StoreConfig,
    TransmitterConfig,
    get_default_config,
    set_default_config,
    setup_logging,
)

__all__ = [
    "CompilerConfig",
    "LedgerConfig",
    "LoggingConfig",
    "PackerConfig",
    "RuntimeConfig",
    "StoreConfig",
    "TransmitterConfig",
    "get_default_config",
    "set_default_config",
    "setup_logging",
]
