"""Configuration system for EVM Wallet API.

Loads service config from a YAML file with environment variable expansion,
and applies the ``RPC_ENDPOINT`` / ``SERVER_PORT`` / ``PRIVATE_KEY``
environment overrides the service has always honoured.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr

from evm_wallet_api.wallet.chains import DEFAULT_FALLBACK_GAS_PRICE, DEFAULT_PRIORITY_FEE_MINIMUM

logger = logging.getLogger("evm_wallet_api.config")

DEFAULT_RPC_ENDPOINT = "https://rpc.verylabs.io"
DEFAULT_SERVER_PORT = 3000


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class RpcConfig(BaseModel):
    """Default JSON-RPC endpoint used when a request names no network."""

    default_endpoint: str = DEFAULT_RPC_ENDPOINT


class ServerConfig(BaseModel):
    """HTTP API settings."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_SERVER_PORT


class FeeConfig(BaseModel):
    """Limits for gas price resolution."""

    max_attempts: int = 3
    backoff_seconds: float = 0.5      # sleep attempt * backoff between failures
    min_gas_price: int = 1_000_000            # 0.001 gwei
    max_gas_price: int = 1_000_000_000_000    # 1000 gwei
    default_fallback_price: int = DEFAULT_FALLBACK_GAS_PRICE
    default_priority_fee_minimum: int = DEFAULT_PRIORITY_FEE_MINIMUM


class ServiceConfig(BaseModel):
    """Root configuration object for the service."""

    rpc: RpcConfig = Field(default_factory=RpcConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    fees: FeeConfig = Field(default_factory=FeeConfig)
    networks: dict[str, str] = Field(default_factory=dict)
    private_key: Optional[SecretStr] = None


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def apply_env_overrides(
    config: ServiceConfig, environ: Mapping[str, str] | None = None
) -> ServiceConfig:
    """Return a copy of *config* with environment overrides applied."""
    env = os.environ if environ is None else environ
    updated = config.model_copy(deep=True)

    rpc_endpoint = env.get("RPC_ENDPOINT")
    if rpc_endpoint:
        updated.rpc.default_endpoint = rpc_endpoint

    port = env.get("SERVER_PORT")
    if port:
        try:
            updated.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring non-numeric SERVER_PORT={port!r}")

    private_key = env.get("PRIVATE_KEY")
    if private_key:
        updated.private_key = SecretStr(private_key)

    return updated


def config_from_env(environ: Mapping[str, str] | None = None) -> ServiceConfig:
    """Build a config from defaults plus environment overrides."""
    return apply_env_overrides(ServiceConfig(), environ)


def load_config(path: Path) -> ServiceConfig:
    """Load and validate a service configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation; ``RPC_ENDPOINT`` and friends are applied afterwards.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return apply_env_overrides(ServiceConfig.model_validate(expanded))


def save_config(config: ServiceConfig, path: Path) -> None:
    """Serialize a :class:`ServiceConfig` to a YAML file (without the private key)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True, exclude={"private_key"})
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
