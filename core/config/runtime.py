"""
Runtime Configuration

Central configuration for compilation, batch packing, transmission,
ledger access and the persisted store.
"""

from __future__ import annotations

import copy
import logging
import os
import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


ENV_PREFIX = "CLAIMFORGE_"

TREE_KINDS = ("narrow", "wide")


@dataclass
class CompilerConfig:
    """Configuration for the campaign compiler."""
    claimants_per_vault: int = 200
    tree_kind: str = "wide"
    max_vaults: int = 255
    parallel_cohorts: bool = False
    max_workers: int = 4

    def __post_init__(self):
        if self.tree_kind not in TREE_KINDS:
            raise ValueError(f"tree_kind must be one of {TREE_KINDS}, got {self.tree_kind!r}")
        if self.claimants_per_vault < 1:
            raise ValueError("claimants_per_vault must be at least 1")
        if not 1 <= self.max_vaults <= 255:
            raise ValueError("max_vaults must be within 1..255")


@dataclass
class PackerConfig:
    """Configuration for the transaction packer."""
    max_batch_bytes: int = 1232
    max_operations_per_batch: int = 10
    batch_overhead_bytes: int = 256


@dataclass
class TransmitterConfig:
    """Configuration for batch submission and retries."""
    max_attempts: int = 5
    base_delay_s: float = 0.5
    max_delay_s: float = 30.0
    jitter: float = 0.25
    confirmation_timeout_s: float = 60.0
    poll_interval_s: float = 1.0
    max_concurrency: int = 4


@dataclass
class LedgerConfig:
    """Configuration for the ledger JSON-RPC endpoint."""
    rpc_url: str = "http://127.0.0.1:8899"
    timeout: float = 30.0
    user_agent: str = "claimforge/0.1"


@dataclass
class StoreConfig:
    """Configuration for the persisted store."""
    path: str = "claimforge.db"


@dataclass
class LoggingConfig:
    """Configuration for process logging."""
    level: str = "INFO"
    log_file: Optional[str] = None


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# (section, key, env suffix, parser)
_ENV_FIELDS: list[tuple[str, str, str, Any]] = [
    ("compiler", "claimants_per_vault", "CLAIMANTS_PER_VAULT", int),
    ("compiler", "tree_kind", "TREE_KIND", str),
    ("compiler", "max_vaults", "MAX_VAULTS", int),
    ("compiler", "parallel_cohorts", "PARALLEL_COHORTS", _env_bool),
    ("packer", "max_batch_bytes", "MAX_BATCH_BYTES", int),
    ("packer", "max_operations_per_batch", "MAX_OPERATIONS_PER_BATCH", int),
    ("transmitter", "max_attempts", "MAX_ATTEMPTS", int),
    ("transmitter", "base_delay_s", "BASE_DELAY_S", float),
    ("transmitter", "max_delay_s", "MAX_DELAY_S", float),
    ("transmitter", "confirmation_timeout_s", "CONFIRMATION_TIMEOUT_S", float),
    ("transmitter", "poll_interval_s", "POLL_INTERVAL_S", float),
    ("transmitter", "max_concurrency", "MAX_CONCURRENCY", int),
    ("ledger", "rpc_url", "RPC_URL", str),
    ("ledger", "timeout", "RPC_TIMEOUT", float),
    ("store", "path", "DB_PATH", str),
    ("logging", "level", "LOG_LEVEL", str),
    ("logging", "log_file", "LOG_FILE", str),
]


@dataclass
class RuntimeConfig:
    """
    Complete runtime configuration for claimforge.

    Can be loaded from:
    - Environment variables
    - YAML file
    - Programmatic construction
    """
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    packer: PackerConfig = field(default_factory=PackerConfig)
    transmitter: TransmitterConfig = field(default_factory=TransmitterConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def _get_env_overrides() -> dict[str, Any]:
        """
        Get configuration overrides from environment variables.

        This is the SINGLE source of truth for all env var reading.
        Every variable is CLAIMFORGE_<SUFFIX>, e.g. CLAIMFORGE_TREE_KIND=narrow
        or CLAIMFORGE_RPC_URL=https://rpc.example.
        """
        overrides: dict[str, Any] = {}
        for section, key, suffix, parse in _ENV_FIELDS:
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw:
                overrides.setdefault(section, {})[key] = parse(raw)
        return overrides

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Load configuration from defaults plus environment variables."""
        return cls.from_dict(cls._get_env_overrides())

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RuntimeConfig":
        """Load configuration from a YAML file."""
        import yaml
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfig":
        """Load configuration from a dictionary (supports partial data)."""
        def section(name: str, klass: type) -> Any:
            values = data.get(name) or {}
            known = {f.name for f in fields(klass)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(f"Unknown {name} config keys: {sorted(unknown)}")
            return klass(**values)

        return cls(
            compiler=section("compiler", CompilerConfig),
            packer=section("packer", PackerConfig),
            transmitter=section("transmitter", TransmitterConfig),
            ledger=section("ledger", LedgerConfig),
            store=section("store", StoreConfig),
            logging=section("logging", LoggingConfig),
            extra=data.get("extra", {}),
        )

    def with_env_overrides(self) -> "RuntimeConfig":
        """
        Return a new config with environment variable overrides applied.

        This allows loading from a config file first, then overlaying env vars.
        """
        overrides = self._get_env_overrides()
        if not overrides:
            return self

        new_config = copy.deepcopy(self)
        for section_name, values in overrides.items():
            target = getattr(new_config, section_name)
            for key, value in values.items():
                setattr(target, key, value)
        # Re-run section validation on the overlaid values
        new_config.compiler.__post_init__()
        return new_config

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary."""
        return {
            "compiler": asdict(self.compiler),
            "packer": asdict(self.packer),
            "transmitter": asdict(self.transmitter),
            "ledger": asdict(self.ledger),
            "store": asdict(self.store),
            "logging": asdict(self.logging),
            "extra": self.extra,
        }


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure process logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


# Global default configuration
_default_config: Optional[RuntimeConfig] = None


def get_default_config() -> RuntimeConfig:
    """Get the default runtime configuration."""
    global _default_config
    if _default_config is None:
        _default_config = RuntimeConfig.from_env()
    return _default_config


def set_default_config(config: RuntimeConfig) -> None:
    """Set the default runtime configuration."""
    global _default_config
    _default_config = config
