"""Configuration records for the manager and the servers it looks after."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

_U16 = (0, 2**16 - 1)
_U32 = (0, 2**32 - 1)
_U64 = (0, 2**64 - 1)
_I32 = (-(2**31), 2**31 - 1)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 300
DEFAULT_STATE_SYNC_TRUST_HEIGHT_OFFSET = 2000
DEFAULT_STATE_SYNC_MAX_SYNC_TIMEOUT_SECONDS = 1800

_SERVER_STRING_FIELDS = ("host", "api_key")

T = TypeVar("T")


class ConfigError(Exception):
    """Raised when configuration data is missing fields or has wrong types."""


def _mapping(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ConfigError(f"{kind} must be a table, got {type(data).__name__}")
    return data


def _value(
    data: Mapping[str, Any],
    key: str,
    kind: type,
    *,
    required: bool = True,
    bounds: tuple[int, int] | None = None,
) -> Any:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigError(f"missing field `{key}`")
        return None
    if kind is bool:
        if not isinstance(value, bool):
            raise ConfigError(f"invalid type for `{key}`: expected a boolean")
    elif kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"invalid type for `{key}`: expected an integer")
        if bounds is not None and not bounds[0] <= value <= bounds[1]:
            raise ConfigError(f"invalid value for `{key}`: {value} is out of range")
    elif kind is str:
        if not isinstance(value, str):
            raise ConfigError(f"invalid type for `{key}`: expected a string")
    elif kind is list:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ConfigError(f"invalid type for `{key}`: expected a list of strings")
        value = list(value)
    return value


def _table(
    data: Mapping[str, Any],
    key: str,
    factory: Callable[[Mapping[str, Any]], T],
    *,
    required: bool = True,
) -> dict[str, T] | None:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigError(f"missing field `{key}`")
        return None
    entries = _mapping(value, key)
    result: dict[str, T] = {}
    for name, entry in entries.items():
        try:
            result[name] = factory(entry)
        except ConfigError as exc:
            raise ConfigError(f"{key}.{name}: {exc}") from exc
    return result


@dataclass
class ServerConfig:
    """How to reach the agent on one server."""

    host: str
    agent_port: int
    api_key: str
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_concurrent_requests: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerConfig:
        data = _mapping(data, "server")
        strings = {name: _value(data, name, str) for name in _SERVER_STRING_FIELDS}
        agent_port = _value(data, "agent_port", int, bounds=_U16)
        timeout = _value(data, "request_timeout_seconds", int, required=False, bounds=_U64)
        return cls(
            agent_port=agent_port,
            request_timeout_seconds=(
                DEFAULT_REQUEST_TIMEOUT_SECONDS if timeout is None else timeout
            ),
            max_concurrent_requests=_value(
                data, "max_concurrent_requests", int, required=False, bounds=_U64
            ),
            **strings,
        )


@dataclass(frozen=True)
class NodeDefaults:
    """Server-wide base paths from which per-node paths are derived."""

    base_deploy_path: str | None = None
    base_log_path: str | None = None
    base_backup_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeDefaults:
        data = _mapping(data, "defaults")
        return cls(
            base_deploy_path=_value(data, "base_deploy_path", str, required=False),
            base_log_path=_value(data, "base_log_path", str, required=False),
            base_backup_path=_value(data, "base_backup_path", str, required=False),
        )


@dataclass
class NodeConfig:
    """One blockchain node and the maintenance configured for it."""

    rpc_url: str
    server_host: str
    enabled: bool
    service_name: str
    network: str = ""
    deploy_path: str | None = None
    pruning_enabled: bool | None = None
    pruning_schedule: str | None = None
    pruning_keep_blocks: int | None = None
    pruning_keep_versions: int | None = None
    log_path: str | None = None
    truncate_logs_enabled: bool | None = None
    log_monitoring_enabled: bool | None = None
    log_monitoring_patterns: list[str] | None = None
    snapshots_enabled: bool | None = None
    snapshot_backup_path: str | None = None
    auto_restore_enabled: bool | None = None
    snapshot_schedule: str | None = None
    snapshot_retention_count: int | None = None
    state_sync_enabled: bool | None = None
    state_sync_schedule: str | None = None
    state_sync_rpc_sources: list[str] | None = None
    state_sync_trust_height_offset: int | None = DEFAULT_STATE_SYNC_TRUST_HEIGHT_OFFSET
    state_sync_max_sync_timeout_seconds: int | None = (
        DEFAULT_STATE_SYNC_MAX_SYNC_TIMEOUT_SECONDS
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeConfig:
        data = _mapping(data, "node")
        network = _value(data, "network", str, required=False)
        if "state_sync_trust_height_offset" in data:
            offset = _value(
                data, "state_sync_trust_height_offset", int, required=False, bounds=_U32
            )
        else:
            offset = DEFAULT_STATE_SYNC_TRUST_HEIGHT_OFFSET
        if "state_sync_max_sync_timeout_seconds" in data:
            sync_timeout = _value(
                data, "state_sync_max_sync_timeout_seconds", int, required=False, bounds=_U64
            )
        else:
            sync_timeout = DEFAULT_STATE_SYNC_MAX_SYNC_TIMEOUT_SECONDS
        return cls(
            rpc_url=_value(data, "rpc_url", str),
            server_host=_value(data, "server_host", str),
            enabled=_value(data, "enabled", bool),
            service_name=_value(data, "service_name", str),
            network=network if network is not None else "",
            deploy_path=_value(data, "deploy_path", str, required=False),
            pruning_enabled=_value(data, "pruning_enabled", bool, required=False),
            pruning_schedule=_value(data, "pruning_schedule", str, required=False),
            pruning_keep_blocks=_value(
                data, "pruning_keep_blocks", int, required=False, bounds=_U32
            ),
            pruning_keep_versions=_value(
                data, "pruning_keep_versions", int, required=False, bounds=_U32
            ),
            log_path=_value(data, "log_path", str, required=False),
            truncate_logs_enabled=_value(data, "truncate_logs_enabled", bool, required=False),
            log_monitoring_enabled=_value(data, "log_monitoring_enabled", bool, required=False),
            log_monitoring_patterns=_value(
                data, "log_monitoring_patterns", list, required=False
            ),
            snapshots_enabled=_value(data, "snapshots_enabled", bool, required=False),
            snapshot_backup_path=_value(data, "snapshot_backup_path", str, required=False),
            auto_restore_enabled=_value(data, "auto_restore_enabled", bool, required=False),
            snapshot_schedule=_value(data, "snapshot_schedule", str, required=False),
            snapshot_retention_count=_value(
                data, "snapshot_retention_count", int, required=False, bounds=_U64
            ),
            state_sync_enabled=_value(data, "state_sync_enabled", bool, required=False),
            state_sync_schedule=_value(data, "state_sync_schedule", str, required=False),
            state_sync_rpc_sources=_value(data, "state_sync_rpc_sources", list, required=False),
            state_sync_trust_height_offset=offset,
            state_sync_max_sync_timeout_seconds=sync_timeout,
        )

    def with_defaults(self, defaults: NodeDefaults | None, node_name: str) -> NodeConfig:
        """Return a copy with unset paths derived from the server's base paths."""
        if defaults is None:
            return replace(self)
        changes: dict[str, str] = {}
        if self.deploy_path is None and defaults.base_deploy_path is not None:
            changes["deploy_path"] = f"{defaults.base_deploy_path}/{self.service_name}"
        if self.log_path is None and defaults.base_log_path is not None:
            changes["log_path"] = f"{defaults.base_log_path}/{self.service_name}"
        if self.snapshot_backup_path is None and defaults.base_backup_path is not None:
            changes["snapshot_backup_path"] = defaults.base_backup_path
        return replace(self, **changes)


@dataclass
class HermesConfig:
    """One Hermes relayer instance."""

    server_host: str
    service_name: str
    log_path: str | None = None
    restart_schedule: str | None = None
    dependent_nodes: list[str] | None = None
    truncate_logs_enabled: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HermesConfig:
        data = _mapping(data, "hermes")
        return cls(
            server_host=_value(data, "server_host", str),
            service_name=_value(data, "service_name", str),
            log_path=_value(data, "log_path", str, required=False),
            restart_schedule=_value(data, "restart_schedule", str, required=False),
            dependent_nodes=_value(data, "dependent_nodes", list, required=False),
            truncate_logs_enabled=_value(data, "truncate_logs_enabled", bool, required=False),
        )


@dataclass
class EtlConfig:
    """One ETL service whose HTTP health endpoint is checked."""

    server_host: str
    host: str
    port: int
    enabled: bool
    endpoint: str | None = None
    timeout_seconds: int | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EtlConfig:
        data = _mapping(data, "etl")
        return cls(
            server_host=_value(data, "server_host", str),
            host=_value(data, "host", str),
            port=_value(data, "port", int, bounds=_U16),
            enabled=_value(data, "enabled", bool),
            endpoint=_value(data, "endpoint", str, required=False),
            timeout_seconds=_value(data, "timeout_seconds", int, required=False, bounds=_U64),
            description=_value(data, "description", str, required=False),
        )


@dataclass
class ServerConfigFile:
    """Contents of one per-server configuration file."""

    server: ServerConfig
    nodes: dict[str, NodeConfig]
    defaults: NodeDefaults | None = None
    hermes: dict[str, HermesConfig] | None = None
    etl: dict[str, EtlConfig] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerConfigFile:
        data = _mapping(data, "server config file")
        if data.get("server") is None:
            raise ConfigError("missing field `server`")
        raw_defaults = data.get("defaults")
        return cls(
            server=ServerConfig.from_dict(data["server"]),
            nodes=_table(data, "nodes", NodeConfig.from_dict),
            defaults=NodeDefaults.from_dict(raw_defaults) if raw_defaults is not None else None,
            hermes=_table(data, "hermes", HermesConfig.from_dict, required=False),
            etl=_table(data, "etl", EtlConfig.from_dict, required=False),
        )


@dataclass
class Config:
    """Main manager configuration plus everything gathered from server files."""

    host: str
    port: int
    check_interval_seconds: int
    rpc_timeout_seconds: int
    alarm_webhook_url: str
    hermes_min_uptime_minutes: int | None = None
    auto_restore_trigger_words: list[str] | None = None
    log_monitoring_context_lines: int | None = None
    servers: dict[str, ServerConfig] = field(default_factory=dict)
    nodes: dict[str, NodeConfig] = field(default_factory=dict)
    hermes: dict[str, HermesConfig] = field(default_factory=dict)
    etl: dict[str, EtlConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        data = _mapping(data, "main config")
        return cls(
            host=_value(data, "host", str),
            port=_value(data, "port", int, bounds=_U16),
            check_interval_seconds=_value(data, "check_interval_seconds", int, bounds=_U64),
            rpc_timeout_seconds=_value(data, "rpc_timeout_seconds", int, bounds=_U64),
            alarm_webhook_url=_value(data, "alarm_webhook_url", str),
            hermes_min_uptime_minutes=_value(
                data, "hermes_min_uptime_minutes", int, required=False, bounds=_U32
            ),
            auto_restore_trigger_words=_value(
                data, "auto_restore_trigger_words", list, required=False
            ),
            log_monitoring_context_lines=_value(
                data, "log_monitoring_context_lines", int, required=False, bounds=_I32
            ),
        )