"""Configuration loader for the bet indexer."""

import os
from dataclasses import dataclass
from pathlib import Path

import httpx
import yaml

from .codec import CodecError, felt_to_hex
from .contracts import TrackedContract
from .decoding import PROFILES
from .engine import CHECKPOINT_POLICIES


class ConfigError(Exception):
    """The configuration is missing or invalid; the process must not start."""


@dataclass
class RpcConfig:
    url: str
    timeout_seconds: float = 30.0
    page_size: int = 100


@dataclass
class DatabaseConfig:
    path: str


@dataclass
class IndexerConfig:
    event_name: str = "BetPlace"
    profile: str = "v2"
    poll_interval_seconds: float = 30.0
    start_block: int = 0
    checkpoint_policy: str = "contiguous"
    # null stores raw integers
    amount_scale: int | None = 18
    odds_scale: int | None = None
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 60.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "logs/bets.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    rpc: RpcConfig
    database: DatabaseConfig
    indexer: IndexerConfig
    logging: LoggingConfig
    contracts: list[TrackedContract]


def _section(raw: dict, name: str, cls, required: bool = True):
    data = raw.get(name)
    if data is None:
        if required:
            raise ConfigError(f"Missing '{name}' section")
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigError(f"Invalid '{name}' section: {e}") from e


def _load_contracts(raw: dict) -> list[TrackedContract]:
    entries = raw.get("contracts") or []
    if not isinstance(entries, list):
        raise ConfigError("'contracts' must be a list")

    contracts = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"address": entry}
        if not isinstance(entry, dict) or "address" not in entry:
            raise ConfigError(f"Invalid contract entry: {entry!r}")
        try:
            address = felt_to_hex(str(entry["address"]))
        except CodecError as e:
            raise ConfigError(f"Invalid contract address: {entry['address']!r}") from e
        contracts.append(
            TrackedContract(
                address=address,
                active=bool(entry.get("active", True)),
                name=entry.get("name"),
            )
        )
    return contracts


def _number(value, name: str, integer: bool = False, positive: bool = False):
    """Reject YAML values that are not numbers before comparing them."""
    kinds = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        kind = "an integer" if integer else "a number"
        raise ConfigError(f"{name} must be {kind}, got {value!r}")
    if positive and value <= 0:
        raise ConfigError(f"{name} must be positive")
    if value < 0:
        raise ConfigError(f"{name} must not be negative")


def _validate(config: Config):
    try:
        url = httpx.URL(config.rpc.url or "")
    except httpx.InvalidURL as e:
        raise ConfigError(f"Invalid RPC URL: {config.rpc.url!r}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Invalid RPC URL: {config.rpc.url!r}")

    _number(config.rpc.page_size, "rpc.page_size", integer=True, positive=True)
    _number(config.rpc.timeout_seconds, "rpc.timeout_seconds", positive=True)
    if not config.database.path:
        raise ConfigError("database.path must be set")

    idx = config.indexer
    if idx.profile not in PROFILES:
        raise ConfigError(
            f"Unknown decoding profile {idx.profile!r} (known: {', '.join(sorted(PROFILES))})"
        )
    if idx.checkpoint_policy not in CHECKPOINT_POLICIES:
        raise ConfigError(f"Unknown checkpoint policy {idx.checkpoint_policy!r}")
    _number(idx.poll_interval_seconds, "indexer.poll_interval_seconds", positive=True)
    _number(idx.start_block, "indexer.start_block", integer=True)
    _number(idx.backoff_base_seconds, "indexer.backoff_base_seconds")
    _number(idx.backoff_max_seconds, "indexer.backoff_max_seconds")
    for name in ("amount_scale", "odds_scale"):
        scale = getattr(idx, name)
        if scale is not None:
            _number(scale, f"indexer.{name}", integer=True)
    if not idx.event_name:
        raise ConfigError("indexer.event_name must be set")


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        # $VAR / ${VAR} let secrets such as the RPC URL come from the environment
        raw = yaml.safe_load(os.path.expandvars(f.read())) or {}

    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a mapping")

    config = Config(
        rpc=_section(raw, "rpc", RpcConfig),
        database=_section(raw, "database", DatabaseConfig),
        indexer=_section(raw, "indexer", IndexerConfig, required=False),
        logging=_section(raw, "logging", LoggingConfig, required=False),
        contracts=_load_contracts(raw),
    )
    _validate(config)
    return config
