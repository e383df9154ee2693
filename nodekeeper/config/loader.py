"""Loading of the manager configuration from a directory of TOML files."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import httpx

from nodekeeper.config.models import (
    Config,
    ConfigError,
    EtlConfig,
    HermesConfig,
    NodeConfig,
    ServerConfig,
    ServerConfigFile,
)

logger = logging.getLogger(__name__)

_MAIN_CONFIG = "main.toml"
_RPC_STATUS_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ConfigManager:
    """Holds the configuration loaded from a config directory."""

    current_config: Config

    @classmethod
    def load(cls, config_dir: str | Path) -> ConfigManager:
        """Load every configuration file in config_dir."""
        return cls(current_config=load_configuration(config_dir))


def _qualify(server_name: str, name: str) -> str:
    """Prefix name with the server name unless it already carries that prefix."""
    prefix = f"{server_name}-"
    return name if name.startswith(prefix) else f"{prefix}{name}"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _load_main(config_dir: Path) -> Config:
    main_path = config_dir / _MAIN_CONFIG
    try:
        text = main_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read main config {main_path}: {exc}") from exc
    try:
        return Config.from_dict(tomllib.loads(text))
    except (tomllib.TOMLDecodeError, ConfigError) as exc:
        raise ConfigError(f"Failed to parse main config: {exc}") from exc


def _prepare_node(
    server_name: str, node_name: str, node: NodeConfig, server_file: ServerConfigFile
) -> tuple[str, NodeConfig]:
    node = replace(node, server_host=server_name)
    final_name = _qualify(server_name, node_name)

    if not node.network or node.network == "auto":
        logger.debug("Auto-detecting network for %s from RPC %s", final_name, node.rpc_url)
        try:
            detected = fetch_network_from_rpc(node.rpc_url)
        except ConfigError as exc:
            logger.warning(
                "Failed to auto-detect network for %s: %s. Please specify 'network' in config.",
                final_name,
                exc,
            )
        else:
            logger.info("Auto-detected network for %s: %s", final_name, detected)
            node = replace(node, network=detected)

    return final_name, node.with_defaults(server_file.defaults, final_name)


def load_configuration(config_dir: str | Path) -> Config:
    """Read main.toml and every per-server *.toml file in config_dir."""
    directory = Path(config_dir)
    config = _load_main(directory)

    servers: dict[str, ServerConfig] = {}
    nodes: dict[str, NodeConfig] = {}
    hermes: dict[str, HermesConfig] = {}
    etl: dict[str, EtlConfig] = {}

    for path in sorted(directory.glob("*.toml")):
        if path.name == _MAIN_CONFIG:
            continue
        server_name = path.name.removesuffix(".toml")
        logger.debug("Loading server config: %s", path)

        raw = _read_toml(path)
        try:
            server_file = ServerConfigFile.from_dict(raw)
        except ConfigError as exc:
            raise ConfigError(f"Failed to parse {path}: {exc}") from exc

        servers[server_name] = server_file.server

        for node_name, node in server_file.nodes.items():
            final_name, prepared = _prepare_node(server_name, node_name, node, server_file)
            nodes[final_name] = prepared

        for hermes_name, relayer in (server_file.hermes or {}).items():
            hermes[_qualify(server_name, hermes_name)] = replace(relayer, server_host=server_name)

        for etl_name, service in (server_file.etl or {}).items():
            etl[_qualify(server_name, etl_name)] = replace(service, server_host=server_name)

    config.servers = servers
    config.nodes = nodes
    config.hermes = hermes
    config.etl = etl

    logger.info(
        "Loaded %d servers, %d nodes, %d hermes instances, %d ETL services",
        len(servers),
        len(nodes),
        len(hermes),
        len(etl),
    )
    return config


def fetch_network_from_rpc(rpc_url: str) -> str:
    """Return the chain id reported at result.node_info.network by the RPC /status endpoint."""
    status_url = f"{rpc_url}/status"
    try:
        response = httpx.get(status_url, timeout=_RPC_STATUS_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        raise ConfigError(f"Failed to fetch RPC status from {status_url}: {exc}") from exc

    if not response.is_success:
        raise ConfigError(
            f"RPC status returned HTTP {response.status_code} {response.reason_phrase}"
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise ConfigError(f"Failed to parse RPC status response: {exc}") from exc

    network: Any = payload
    for key in ("result", "node_info", "network"):
        network = network.get(key) if isinstance(network, dict) else None
    if not isinstance(network, str):
        raise ConfigError("Network field not found in RPC response")
    return network