"""Full pruning run: stop the node, prune its stores, start it again."""

from __future__ import annotations

import logging

from nodekeeper import commands, logs, systemctl
from nodekeeper.types import PruningRequest

logger = logging.getLogger(__name__)


class OperationError(Exception):
    """Raised when a maintenance sequence cannot be completed."""


def execute_full_pruning_sequence(request: PruningRequest) -> str:
    """Prune a node's data with cosmos-pruner and return a summary of the steps."""
    service = request.service_name
    logger.info("Starting FULL pruning sequence for service: %s", service)
    logger.info(
        "Deploy path: %s, keep_blocks: %s, keep_versions: %s",
        request.deploy_path,
        request.keep_blocks,
        request.keep_versions,
    )

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

    logger.info("Step 3: Executing cosmos-pruner")
    pruning_output = commands.execute_cosmos_pruner(
        request.deploy_path, request.keep_blocks, request.keep_versions
    )
    steps.append("✓ Completed cosmos-pruner execution")

    logger.info("Step 4: Starting service %s", service)
    systemctl.start_service(service)
    steps.append(f"✓ Started service: {service}")

    status = systemctl.get_service_status(service)
    if status != "active":
        raise OperationError(
            f"Service {service} failed to start properly after pruning (status: {status})"
        )
    steps.append(f"✓ Verified service is running: {status}")

    logger.info("Full pruning sequence completed successfully for: %s", service)

    step_lines = "\n".join(steps)
    return (
        "=== PRUNING OPERATION COMPLETED ===\n"
        f"Service: {service}\n"
        f"Deploy Path: {request.deploy_path}\n"
        f"Blocks Kept: {request.keep_blocks}\n"
        f"Versions Kept: {request.keep_versions}\n"
        "\n"
        "Operation Steps:\n"
        f"{step_lines}\n"
        "\n"
        "Pruning Output:\n"
        f"{pruning_output.strip()}"
    )