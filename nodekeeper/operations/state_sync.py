"""State-sync run: reset a node and let it catch up from trusted RPC peers."""

from __future__ import annotations

import json
import logging
import shlex
import time
from pathlib import Path

from nodekeeper import commands, config_editor, logs, systemctl
from nodekeeper.commands import CommandError
from nodekeeper.operations.pruning import OperationError
from nodekeeper.types import StateSyncRequest

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 10
_RESTART_PAUSE_SECONDS = 2


def wait_for_sync_completion(daemon_binary: str, home_dir: str, timeout_seconds: int) -> int:
    """Poll the node until it stops catching up; return the number of checks made.

    Raises OperationError once timeout_seconds have passed without the node
    reporting that it finished syncing.
    """
    check_command = (
        f"{shlex.quote(daemon_binary)} status --home {shlex.quote(home_dir)} 2>&1 "
        "| grep -o '\"catching_up\":[^,]*' | cut -d':' -f2"
    )
    logger.info("Monitoring sync status with timeout of %ss", timeout_seconds)

    deadline = time.monotonic() + timeout_seconds
    checks = 0
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        time.sleep(min(_POLL_INTERVAL_SECONDS, remaining))
        if time.monotonic() >= deadline:
            break

        checks += 1
        logger.info("Checking sync status (check #%d)", checks)
        try:
            output = commands.execute_shell_command(check_command)
        except CommandError as exc:
            logger.info("Status check failed (node might still be starting): %s", exc)
            continue

        catching_up = output.strip().strip('}" ')
        logger.info("Sync status: catching_up = %s", catching_up)
        if catching_up == "false":
            logger.info("Node finished syncing")
            return checks
        logger.info("Node still syncing (catching_up = true)...")

    raise OperationError(
        f"State sync timeout after {timeout_seconds}s - node did not complete syncing"
    )


def execute_state_sync_sequence(request: StateSyncRequest) -> str:
    """Run the full state-sync sequence and return a summary of the steps."""
    service = request.service_name
    logger.info("Starting state sync sequence for service: %s", service)
    logger.info("RPC servers: %s", request.rpc_servers)
    logger.info("Trust height: %s, hash: %s", request.trust_height, request.trust_hash)

    steps: list[str] = []

    logger.info("Step 1: Stopping service %s", service)
    systemctl.stop_service(service)
    steps.append(f"✓ Stopped service: {service}")

    if request.log_path is not None:
        logger.info("Step 2: Truncating logs at: %s", request.log_path)
        logs.truncate_log_path(request.log_path)
        steps.append(f"✓ Truncated logs: {request.log_path}")
    else:
        logger.info("Step 2: No log path configured, skipping log truncation")
        steps.append("• Skipped log truncation (not configured)")

    logger.info("Step 3: Updating config.toml with state sync parameters")
    config_editor.enable_state_sync(
        request.config_path, request.rpc_servers, request.trust_height, request.trust_hash
    )
    steps.append("✓ Updated config.toml with state sync parameters")

    logger.info("Step 4: Executing unsafe-reset-all")
    commands.execute_shell_command(
        f"{shlex.quote(request.daemon_binary)} tendermint unsafe-reset-all "
        f"--home {shlex.quote(request.home_dir)} --keep-addr-book"
    )
    steps.append("✓ Chain state reset (unsafe-reset-all)")

    logger.info("Step 5: Cleaning WASM cache")
    wasm_cache = f"{request.home_dir}/wasm/cache"
    if Path(wasm_cache).is_dir():
        commands.delete_directory(wasm_cache)
        steps.append("✓ WASM cache cleaned")
    else:
        steps.append("• WASM cache not found, skipping")

    logger.info("Step 6: Starting service %s", service)
    systemctl.start_service(service)
    steps.append(f"✓ Started service: {service}")

    logger.info(
        "Step 7: Waiting for state sync to complete (timeout: %ss)", request.timeout_seconds
    )
    wait_for_sync_completion(request.daemon_binary, request.home_dir, request.timeout_seconds)
    steps.append("✓ State sync completed")

    logger.info("Step 8: Disabling state sync in config")
    config_editor.disable_state_sync(request.config_path)
    steps.append("✓ State sync disabled in config")

    logger.info("Step 9: Restarting service to apply config")
    systemctl.stop_service(service)
    time.sleep(_RESTART_PAUSE_SECONDS)
    systemctl.start_service(service)
    steps.append("✓ Service restarted with state sync disabled")

    status = systemctl.get_service_status(service)
    if status != "active":
        raise OperationError(
            f"Service {service} failed to start properly after state sync (status: {status})"
        )
    steps.append(f"✓ Verified service is running: {status}")

    logger.info("State sync sequence completed successfully for: %s", service)

    step_lines = "\n".join(steps)
    return (
        "=== STATE SYNC OPERATION COMPLETED ===\n"
        f"Service: {service}\n"
        f"Home Dir: {request.home_dir}\n"
        f"Trust Height: {request.trust_height}\n"
        f"Trust Hash: {request.trust_hash}\n"
        f"RPC Servers: {json.dumps(list(request.rpc_servers))}\n"
        "\n"
        "Operation Steps:\n"
        f"{step_lines}\n"
    )