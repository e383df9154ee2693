"""Control of systemd services through systemctl."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Raised when a systemctl action fails."""


def _run(args: Sequence[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(list(args), capture_output=True, text=True, errors="replace")
    except OSError as exc:
        raise ServiceError(f"Failed to run {args[0]}: {exc}") from exc


def get_service_status(service_name: str) -> str:
    """Return the output of `systemctl is-active`, e.g. "active" or "inactive"."""
    logger.debug("Checking service status: %s", service_name)
    return _run(["systemctl", "is-active", service_name]).stdout.strip()


def start_service(service_name: str) -> None:
    """Start a service with sudo systemctl."""
    logger.info("Starting service: %s", service_name)
    proc = _run(["sudo", "systemctl", "start", service_name])
    if proc.returncode != 0:
        raise ServiceError(f"Failed to start service {service_name}: {proc.stderr}")
    logger.info("Service %s started successfully", service_name)


def stop_service(service_name: str) -> None:
    """Stop a service with sudo systemctl."""
    logger.info("Stopping service: %s", service_name)
    proc = _run(["sudo", "systemctl", "stop", service_name])
    if proc.returncode != 0:
        raise ServiceError(f"Failed to stop service {service_name}: {proc.stderr}")
    logger.info("Service %s stopped successfully", service_name)


def get_service_uptime(service_name: str) -> int:
    """Return seconds since the service last became active, 0 if it never did."""
    logger.debug("Getting service uptime: %s", service_name)
    stamp = _run(
        ["systemctl", "show", service_name, "--property=ActiveEnterTimestamp", "--value"]
    ).stdout.strip()
    if not stamp or stamp == "n/a":
        return 0

    epoch_text = _run(["date", "-d", stamp, "+%s"]).stdout.strip()
    try:
        started = int(epoch_text)
    except ValueError as exc:
        raise ServiceError("Failed to parse timestamp") from exc
    return max(int(time.time()) - started, 0)