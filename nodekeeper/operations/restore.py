"""Restore of a node's data and wasm directories from a network snapshot."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from nodekeeper import commands, logs, systemctl
from nodekeeper.commands import CommandError
from nodekeeper.operations.pruning import OperationError
from nodekeeper.types import RestoreRequest

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def _size_or_zero(path: str) -> int:
    try:
        return commands.get_directory_size(path)
    except CommandError:
        return 0


def _match_ownership(reference: str, target: str) -> None:
    """Give target and everything below it the owner and group of reference."""
    try:
        info = os.stat(reference)
        os.chown(target, info.st_uid, info.st_gid, follow_symlinks=False)
        for root, dirs, files in os.walk(target):
            for name in (*dirs, *files):
                os.chown(
                    os.path.join(root, name), info.st_uid, info.st_gid, follow_symlinks=False
                )
    except OSError as exc:
        raise OperationError(f"Failed to set ownership of {target}: {exc}") from exc


def execute_full_restore_sequence(request: RestoreRequest) -> str:
    """Replace a node's data and wasm with a snapshot, keeping its own validator state."""
    logger.info(
        "Starting snapshot restore for node: %s from network snapshot", request.node_name
    )
    snapshot_dir = request.snapshot_dir
    deploy_path = request.deploy_path
    service = request.service_name

    if not Path(snapshot_dir).is_dir():
        raise OperationError(f"Snapshot directory does not exist: {snapshot_dir}")
    for name in ("data", "wasm"):
        if not Path(f"{snapshot_dir}/{name}").is_dir():
            raise OperationError(
                f"CRITICAL: {name} directory missing from snapshot: {snapshot_dir}/{name}"
            )
    logger.info("Verified both data and wasm directories exist in snapshot")

    data_size = _size_or_zero(f"{snapshot_dir}/data")
    wasm_size = _size_or_zero(f"{snapshot_dir}/wasm")
    logger.info(
        "Snapshot data size: %.1f MB, wasm size: %.1f MB", data_size / _MIB, wasm_size / _MIB
    )

    systemctl.stop_service(service)
    logger.info("Node service stopped")

    current_validator_path = f"{deploy_path}/data/priv_validator_state.json"
    validator_backup_path = f"{deploy_path}/priv_validator_state_backup.json"
    logger.info("Backing up current validator state to preserve individual signing information")
    commands.backup_current_validator_state(current_validator_path, validator_backup_path)

    if request.log_path is not None:
        logs.truncate_log_path(request.log_path)
        logger.info("Logs truncated")

    for name in ("data", "wasm"):
        existing = f"{deploy_path}/{name}"
        if Path(existing).is_dir():
            commands.delete_directory(existing)
            logger.info("Existing %s directory deleted", name)

    logger.info("Copying network snapshot data and wasm directories")
    commands.copy_snapshot_directories_mandatory(snapshot_dir, deploy_path)

    for name in ("data", "wasm"):
        if not Path(f"{deploy_path}/{name}").is_dir():
            raise OperationError(
                f"CRITICAL: {name} directory not found after copy to {deploy_path}/{name}"
            )
    logger.info("Verified both data and wasm directories exist after copy")

    logger.info("Overwriting snapshot's validator state with current node's validator state")
    commands.restore_current_validator_state(validator_backup_path, current_validator_path)

    for name in ("data", "wasm"):
        _match_ownership(deploy_path, f"{deploy_path}/{name}")
    logger.info("Permissions set for both data and wasm directories")

    commands.remove_file_if_exists(validator_backup_path)
    logger.info("Validator backup file cleaned up")

    systemctl.start_service(service)
    logger.info("Node service started")

    status = systemctl.get_service_status(service)
    if status != "active":
        raise OperationError(
            f"Service {service} failed to start properly after restore (status: {status})"
        )
    logger.info("Network snapshot restore completed successfully for node: %s", request.node_name)

    return (
        f"Network snapshot restore completed for {request.node_name} "
        "(individual validator state preserved, snapshot's validator state overwritten)"
    )