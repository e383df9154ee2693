"""Creation of a network snapshot from a node's data and wasm directories."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from nodekeeper import commands, logs, systemctl
from nodekeeper.operations.pruning import OperationError
from nodekeeper.types import SnapshotInfo, SnapshotRequest

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024
_MIN_SNAPSHOT_BYTES = 1024


def execute_full_snapshot_sequence(request: SnapshotRequest) -> SnapshotInfo:
    """Copy a stopped node's data and wasm into a timestamped snapshot directory."""
    logger.info(
        "Starting snapshot creation for network: %s (from node: %s)",
        request.network,
        request.node_name,
    )
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    snapshot_dirname = f"{request.network}_{timestamp}"
    snapshot_path = f"{request.backup_path}/{snapshot_dirname}"
    service = request.service_name

    for name in ("data", "wasm"):
        if not Path(f"{request.deploy_path}/{name}").is_dir():
            raise OperationError(
                f"CRITICAL: Source {name} directory missing: {request.deploy_path}/{name}"
            )
    logger.info("Verified both source data and wasm directories exist")

    commands.create_directory(request.backup_path)
    commands.create_directory(snapshot_path)
    logger.info("Snapshot directories created")

    systemctl.stop_service(service)
    logger.info("Node service stopped")

    if request.log_path is not None:
        logs.truncate_log_path(request.log_path)
        logger.info("Logs truncated")

    logger.info("Copying data and wasm directories to snapshot (including validator state)")
    commands.copy_directories_to_snapshot_mandatory(
        request.deploy_path, snapshot_path, ["data", "wasm"]
    )

    for name in ("data", "wasm"):
        if not Path(f"{snapshot_path}/{name}").is_dir():
            raise OperationError(
                f"CRITICAL: {name} directory missing from snapshot: {snapshot_path}/{name}"
            )
    logger.info("Verified both data and wasm directories exist in snapshot")

    if Path(f"{snapshot_path}/data/priv_validator_state.json").is_file():
        logger.info("Validator state included in snapshot for external system compatibility")
    else:
        logger.info("No validator state found in snapshot (node may not be a validator)")

    size_bytes = commands.get_directory_size(snapshot_path)
    if size_bytes < _MIN_SNAPSHOT_BYTES:
        raise OperationError(
            f"Snapshot directory is too small ({size_bytes} bytes), likely empty or incomplete"
        )
    logger.info("Snapshot size verified: %.1f MB", size_bytes / _MIB)

    systemctl.start_service(service)
    logger.info("Node service started")

    status = systemctl.get_service_status(service)
    if status != "active":
        raise OperationError(
            f"Service {service} failed to start properly after snapshot (status: {status})"
        )

    logger.info(
        "Network snapshot created successfully: %s (%.1f MB), usable by any node on %s",
        snapshot_dirname,
        size_bytes / _MIB,
        request.network,
    )
    return SnapshotInfo(filename=snapshot_dirname, size_bytes=size_bytes, path=snapshot_path)