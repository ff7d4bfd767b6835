"""Shared configuration loader for sui-ptb."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .types import SUI_COIN_TYPE, ConstructionError, normalize_address


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".sui-ptb.yaml"
DEFAULT_ENDPOINT = "https://fullnode.mainnet.sui.io:443"
DEFAULT_TIMEOUT = 30.0
DEFAULT_GAS_BUDGET = 100_000_000
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class RPCConfig:
    """Connection details for a Sui full node JSON-RPC endpoint."""

    endpoint: str = DEFAULT_ENDPOINT
    user: str | None = None
    password: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return self.endpoint.rstrip("/")

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.user and self.password:
            return (self.user, self.password)
        return None


@dataclass
class SimulationConfig:
    """Defaults for building and simulating batches."""

    sender: str | None = None
    gas_budget: int = DEFAULT_GAS_BUDGET
    coin_type: str = SUI_COIN_TYPE


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )
    return path, explicit


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_number(raw: Any, kind: type, *, source: str) -> Any:
    if raw is None:
        return None
    try:
        value = kind(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {kind.__name__} in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Expected a positive value in {source}: {raw}")
    return value


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_endpoint(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    return raw


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load RPC configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_path(config_path)
    rpc_section = _section(_load_config_file(path, required=explicit), "rpc", path)
    override_map = dict(overrides or {})

    env_endpoint = env_map.get("SUI_PTB_RPC_URL") or env_map.get("SUI_RPC_URL")
    endpoint = _first_value(
        override_map.get("endpoint"), env_endpoint, rpc_section.get("endpoint"), DEFAULT_ENDPOINT
    )
    timeout = _first_value(
        _coerce_number(override_map.get("timeout"), float, source="overrides"),
        _coerce_number(env_map.get("SUI_PTB_RPC_TIMEOUT"), float, source="environment"),
        _coerce_number(rpc_section.get("timeout"), float, source=f"{path} rpc.timeout"),
        DEFAULT_TIMEOUT,
    )

    return RPCConfig(
        endpoint=_validate_endpoint(str(endpoint)),
        user=_first_value(
            override_map.get("user"), env_map.get("SUI_PTB_RPC_USER"), rpc_section.get("user")
        ),
        password=_first_value(
            override_map.get("password"),
            env_map.get("SUI_PTB_RPC_PASSWORD"),
            rpc_section.get("password"),
        ),
        timeout=timeout,
    )


def load_simulation_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SimulationConfig:
    """Load sender, gas budget and coin type defaults."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_path(config_path)
    section = _section(_load_config_file(path, required=explicit), "simulation", path)
    override_map = dict(overrides or {})

    sender = _first_value(
        override_map.get("sender"), env_map.get("SUI_PTB_SENDER"), section.get("sender")
    )
    if sender is not None:
        try:
            sender = normalize_address(str(sender))
        except ConstructionError as exc:
            raise ConfigurationError(f"Invalid sender address: {sender}") from exc

    gas_budget = _first_value(
        _coerce_number(override_map.get("gas_budget"), int, source="overrides"),
        _coerce_number(env_map.get("SUI_PTB_GAS_BUDGET"), int, source="environment"),
        _coerce_number(section.get("gas_budget"), int, source=f"{path} simulation.gas_budget"),
        DEFAULT_GAS_BUDGET,
    )
    coin_type = _first_value(
        override_map.get("coin_type"),
        env_map.get("SUI_PTB_COIN_TYPE"),
        section.get("coin_type"),
        SUI_COIN_TYPE,
    )
    return SimulationConfig(sender=sender, gas_budget=gas_budget, coin_type=str(coin_type))
