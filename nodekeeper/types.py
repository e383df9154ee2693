"""Request, response and job records exchanged with the node agent."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _mapping(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{kind} must be a mapping, got {type(data).__name__}")
    return data


def _string(data: Mapping[str, Any], key: str, *, optional: bool = False) -> str | None:
    value = data.get(key)
    if value is None:
        if optional:
            return None
        raise ValueError(f"missing field `{key}`")
    if not isinstance(value, str):
        raise ValueError(f"invalid type for `{key}`: expected a string")
    return value


def _integer(
    data: Mapping[str, Any], key: str, *, unsigned: bool = False, optional: bool = False
) -> int | None:
    value = data.get(key)
    if value is None:
        if optional:
            return None
        raise ValueError(f"missing field `{key}`")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"invalid type for `{key}`: expected an integer")
    if unsigned and value < 0:
        raise ValueError(f"invalid value for `{key}`: must not be negative")
    return value


def _string_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        raise ValueError(f"missing field `{key}`")
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"invalid type for `{key}`: expected a list of strings")
    return list(value)


def _format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(data: Mapping[str, Any], key: str, *, optional: bool = False) -> datetime | None:
    text = _string(data, key, optional=optional)
    if text is None:
        return None
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"invalid timestamp for `{key}`: {text}") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# === Requests ===


@dataclass(frozen=True)
class CommandRequest:
    """A shell command to run on the agent host."""

    command: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CommandRequest:
        data = _mapping(data, cls.__name__)
        return cls(command=_string(data, "command"))


@dataclass(frozen=True)
class ServiceRequest:
    """A request naming one systemd service."""

    service_name: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServiceRequest:
        data = _mapping(data, cls.__name__)
        return cls(service_name=_string(data, "service_name"))


@dataclass(frozen=True)
class LogTruncateRequest:
    """Truncate the logs of a service."""

    log_path: str
    service_name: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LogTruncateRequest:
        data = _mapping(data, cls.__name__)
        return cls(
            log_path=_string(data, "log_path"),
            service_name=_string(data, "service_name"),
        )


@dataclass(frozen=True)
class LogDeleteAllRequest:
    """Delete every file directly inside a log directory."""

    log_path: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LogDeleteAllRequest:
        data = _mapping(data, cls.__name__)
        return cls(log_path=_string(data, "log_path"))


@dataclass(frozen=True)
class PruningRequest:
    """Parameters of a full pruning run."""

    deploy_path: str
    keep_blocks: int
    keep_versions: int
    service_name: str
    log_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PruningRequest:
        data = _mapping(data, cls.__name__)
        return cls(
            deploy_path=_string(data, "deploy_path"),
            keep_blocks=_integer(data, "keep_blocks", unsigned=True),
            keep_versions=_integer(data, "keep_versions", unsigned=True),
            service_name=_string(data, "service_name"),
            log_path=_string(data, "log_path", optional=True),
        )


@dataclass(frozen=True)
class SnapshotRequest:
    """Parameters of a snapshot creation."""

    node_name: str
    network: str
    deploy_path: str
    backup_path: str
    service_name: str
    log_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SnapshotRequest:
        data = _mapping(data, cls.__name__)
        return cls(
            node_name=_string(data, "node_name"),
            network=_string(data, "network"),
            deploy_path=_string(data, "deploy_path"),
            backup_path=_string(data, "backup_path"),
            service_name=_string(data, "service_name"),
            log_path=_string(data, "log_path", optional=True),
        )


@dataclass(frozen=True)
class RestoreRequest:
    """Parameters of a restore from a snapshot directory."""

    node_name: str
    deploy_path: str
    snapshot_dir: str
    service_name: str
    log_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RestoreRequest:
        data = _mapping(data, cls.__name__)
        return cls(
            node_name=_string(data, "node_name"),
            deploy_path=_string(data, "deploy_path"),
            snapshot_dir=_string(data, "snapshot_dir"),
            service_name=_string(data, "service_name"),
            log_path=_string(data, "log_path", optional=True),
        )


# === Jobs ===


class JobStatus(Enum):
    """Lifecycle state of a background job."""

    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class JobInfo:
    """State of one background job."""

    job_id: str
    operation_type: str
    target_name: str
    status: JobStatus
    started_at: datetime
    completed_at: datetime | None = None
    result: Any = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "operation_type": self.operation_type,
            "target_name": self.target_name,
            "status": self.status.value,
            "started_at": _format_time(self.started_at),
            "completed_at": _format_time(self.completed_at) if self.completed_at else None,
            "result": self.result,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JobInfo:
        data = _mapping(data, cls.__name__)
        status_text = _string(data, "status")
        try:
            status = JobStatus(status_text)
        except ValueError as exc:
            raise ValueError(f"unknown job status: {status_text}") from exc
        return cls(
            job_id=_string(data, "job_id"),
            operation_type=_string(data, "operation_type"),
            target_name=_string(data, "target_name"),
            status=status,
            started_at=_parse_time(data, "started_at"),
            completed_at=_parse_time(data, "completed_at", optional=True),
            result=data.get("result"),
            error_message=_string(data, "error_message", optional=True),
        )


@dataclass(frozen=True)
class AsyncResponse:
    """Reply sent when a job has been started in the background."""

    success: bool
    job_id: str
    status: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "job_id": self.job_id,
            "status": self.status,
            "message": self.message,
        }


# === Responses ===


@dataclass(frozen=True)
class ApiResponse:
    """Generic agent reply; fields left as None are omitted on the wire."""

    success: bool
    data: Any = None
    output: str | None = None
    error: str | None = None
    status: str | None = None
    uptime_seconds: int | None = None
    filename: str | None = None
    size_bytes: int | None = None
    path: str | None = None
    compression: str | None = None
    job_id: str | None = None
    job_status: str | None = None

    @classmethod
    def failure(cls, message: str) -> ApiResponse:
        return cls(success=False, error=message)

    @classmethod
    def ok(cls) -> ApiResponse:
        return cls(success=True)

    @classmethod
    def with_output(cls, output: str) -> ApiResponse:
        return cls(success=True, output=output)

    @classmethod
    def with_status(cls, status: str) -> ApiResponse:
        return cls(success=True, status=status)

    @classmethod
    def with_uptime(cls, uptime_seconds: int) -> ApiResponse:
        return cls(success=True, uptime_seconds=uptime_seconds)

    @classmethod
    def with_snapshot(cls, filename: str, size_bytes: int, path: str) -> ApiResponse:
        return cls(
            success=True,
            filename=filename,
            size_bytes=size_bytes,
            path=path,
            compression="directory",
        )

    @classmethod
    def with_job(cls, job_id: str, status: str) -> ApiResponse:
        return cls(success=True, job_id=job_id, job_status=status)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        optional = {
            "data": self.data,
            "output": self.output,
            "error": self.error,
            "status": self.status,
            "uptime_seconds": self.uptime_seconds,
            "filename": self.filename,
            "size_bytes": self.size_bytes,
            "path": self.path,
            "compression": self.compression,
            "job_id": self.job_id,
            "job_status": self.job_status,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


# === Internal records ===


@dataclass(frozen=True)
class SnapshotInfo:
    """Result of a successful snapshot creation."""

    filename: str
    size_bytes: int
    path: str


@dataclass(frozen=True)
class StateSyncRequest:
    """Parameters of a state-sync run."""

    service_name: str
    home_dir: str
    config_path: str
    daemon_binary: str
    rpc_servers: list[str]
    trust_height: int
    trust_hash: str
    timeout_seconds: int
    log_path: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StateSyncRequest:
        data = _mapping(data, cls.__name__)
        return cls(
            service_name=_string(data, "service_name"),
            home_dir=_string(data, "home_dir"),
            config_path=_string(data, "config_path"),
            daemon_binary=_string(data, "daemon_binary"),
            rpc_servers=_string_list(data, "rpc_servers"),
            trust_height=_integer(data, "trust_height"),
            trust_hash=_string(data, "trust_hash"),
            timeout_seconds=_integer(data, "timeout_seconds", unsigned=True),
            log_path=_string(data, "log_path", optional=True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "home_dir": self.home_dir,
            "config_path": self.config_path,
            "daemon_binary": self.daemon_binary,
            "rpc_servers": list(self.rpc_servers),
            "trust_height": self.trust_height,
            "trust_hash": self.trust_hash,
            "timeout_seconds": self.timeout_seconds,
            "log_path": self.log_path,
        }