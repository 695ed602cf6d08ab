"""
Configuration management using pydantic-settings and a YAML node file.

Indexer settings are resolved with this precedence, highest first:

1. ``BTC_NODE_API_URL`` (process environment or ``.env``) - only the URL is
   taken; every other node field keeps its default and ``config.yml`` is not read.
2. ``config.yml`` with a non-empty ``wallet_node.btc.data_api_url`` - the whole
   ``wallet_node.btc`` record.
3. Built-in defaults pointing at the public Blockstream testnet indexer.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from btcwallet.errors import ConfigError
from btcwallet.network import NetworkParams, NetworkType, get_network_params

DEFAULT_DATA_API_URL = "https://blockstream.info/testnet/api"
DEFAULT_CONFIG_FILE = "config.yml"


class ConfigSource(str, Enum):
    ENV = "env"
    YAML = "yaml"
    DEFAULTS = "defaults"


class NodeConfig(BaseModel):
    """``wallet_node.<chain>`` section of config.yml."""

    model_config = ConfigDict(extra="ignore")

    rpc_url: str = ""
    rpc_user: str = ""
    rpc_pass: str = ""
    data_api_url: str = ""
    data_api_key: str = ""
    data_api_token: str = ""
    time_out: int = Field(default=0, ge=0, description="Request timeout in seconds, 0 = none")

    @property
    def timeout(self) -> float | None:
        return float(self.time_out) if self.time_out > 0 else None


class WalletNodeSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    btc: NodeConfig = Field(default_factory=NodeConfig)
    eth: NodeConfig = Field(default_factory=NodeConfig)


class ConfigFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wallet_node: WalletNodeSection = Field(default_factory=WalletNodeSection)


class EnvSettings(BaseSettings):
    """Settings read from the process environment and an optional ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    btc_node_api_url: str = ""
    btc_private_key: str = ""
    btc_address: str = ""
    btc_network: NetworkType = NetworkType.TESTNET
    btc_config_file: str = DEFAULT_CONFIG_FILE
    btc_broadcast: bool = False

    log_level: str = "INFO"


class WalletConfig(BaseModel):
    """Fully resolved runtime configuration, built once at startup."""

    node: NodeConfig
    source: ConfigSource
    network: NetworkType = NetworkType.TESTNET
    private_key_hex: str = Field(default="", repr=False)
    address: str = ""
    broadcast: bool = False
    log_level: str = "INFO"

    @property
    def network_params(self) -> NetworkParams:
        return get_network_params(self.network)


def default_node_config() -> NodeConfig:
    return NodeConfig(rpc_url=DEFAULT_DATA_API_URL, data_api_url=DEFAULT_DATA_API_URL)


def read_config_file(path: Path) -> ConfigFile | None:
    """
    Parse a YAML node file. Returns None when the file does not exist.

    Raises:
        ConfigError: if the file cannot be read, parsed or validated
    """
    if not path.exists():
        return None
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read {path}: {e}", field=str(path)) from e

    if data is None:
        return ConfigFile()
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at top level", field=str(path))
    try:
        return ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid {path}: {e}", field=str(path)) from e


def resolve_node_config(
    env: EnvSettings, config_path: Path | None = None
) -> tuple[NodeConfig, ConfigSource]:
    """Pick the indexer settings following the documented precedence."""
    if env.btc_node_api_url:
        url = env.btc_node_api_url
        return NodeConfig(rpc_url=url, data_api_url=url), ConfigSource.ENV

    path = config_path if config_path is not None else Path(env.btc_config_file)
    config_file = read_config_file(path)
    if config_file is not None and config_file.wallet_node.btc.data_api_url:
        return config_file.wallet_node.btc, ConfigSource.YAML

    return default_node_config(), ConfigSource.DEFAULTS


def load_config(
    config_path: Path | str | None = None,
    env_file: Path | str | None = ".env",
    **overrides: Any,
) -> WalletConfig:
    """
    Load the wallet configuration.

    Args:
        config_path: YAML node file (default: BTC_CONFIG_FILE or ./config.yml)
        env_file: dotenv file to read in addition to the process environment
            (None disables it)
        **overrides: EnvSettings field values that take priority over the
            environment, e.g. from command-line options

    Raises:
        ConfigError: on an invalid environment value or node file
    """
    try:
        env = EnvSettings(
            _env_file=env_file,
            **{k: v for k, v in overrides.items() if v is not None},
        )
    except ValidationError as e:
        raise ConfigError(f"invalid environment settings: {e}") from e

    node, source = resolve_node_config(env, Path(config_path) if config_path else None)
    logger.debug(f"Indexer settings from {source.value}: {node.data_api_url}")

    return WalletConfig(
        node=node,
        source=source,
        network=env.btc_network,
        private_key_hex=env.btc_private_key.strip(),
        address=env.btc_address.strip(),
        broadcast=env.btc_broadcast,
        log_level=env.log_level.upper(),
    )
