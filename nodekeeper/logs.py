"""Truncation and removal of node log files."""

from __future__ import annotations

import fnmatch
import logging
import subprocess
from pathlib import Path

from nodekeeper import systemctl
from nodekeeper.systemctl import ServiceError

logger = logging.getLogger(__name__)

_LOG_PATTERNS = ("*.log", "out*.log", "error*.log")


class LogError(Exception):
    """Raised when logs cannot be truncated or deleted."""


def _sudo_truncate(paths: list[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["sudo", "truncate", "-s", "0", *paths],
            capture_output=True,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise LogError(f"Failed to run truncate: {exc}") from exc


def truncate_log_file(log_path: str) -> None:
    """Empty one log file with sudo truncate."""
    logger.info("Truncating log file: %s", log_path)
    proc = _sudo_truncate([str(log_path)])
    if proc.returncode != 0:
        raise LogError(f"Failed to truncate log file {log_path}: {proc.stderr}")
    logger.info("Log file truncated successfully: %s", log_path)


def _is_log_file(entry: Path) -> bool:
    return entry.is_file() and not entry.is_symlink() and any(
        fnmatch.fnmatch(entry.name, pattern) for pattern in _LOG_PATTERNS
    )


def truncate_log_directory(log_dir: str) -> list[str]:
    """Empty every *.log file directly inside log_dir; return the files truncated."""
    logger.info("Truncating all log files in directory: %s", log_dir)
    try:
        files = sorted(str(entry) for entry in Path(log_dir).iterdir() if _is_log_file(entry))
    except OSError as exc:
        raise LogError(f"Failed to truncate logs in directory {log_dir}: {exc}") from exc

    if not files:
        logger.warning("No log files found in directory: %s", log_dir)
        return []

    proc = _sudo_truncate(files)
    if proc.returncode != 0:
        raise LogError(f"Failed to truncate logs in directory {log_dir}: {proc.stderr}")
    logger.info("Truncated log files:\n%s", "\n".join(files))
    return files


def delete_all_files_in_directory(log_dir: str) -> int:
    """Delete regular files directly inside log_dir, keeping subdirectories; return the count."""
    logger.info("Deleting all files in directory: %s", log_dir)
    directory = Path(log_dir)
    if not directory.is_dir():
        raise LogError(f"Directory does not exist: {log_dir}")

    deleted = 0
    try:
        for entry in directory.iterdir():
            if entry.is_file() and not entry.is_symlink():
                entry.unlink()
                deleted += 1
    except OSError as exc:
        raise LogError(f"Failed to delete files in directory {log_dir}: {exc}") from exc

    remaining = sum(1 for entry in directory.iterdir() if entry.is_file() and not entry.is_symlink())
    logger.info(
        "All files deleted successfully from directory: %s (remaining files: %d)",
        log_dir,
        remaining,
    )
    return deleted


def truncate_log_path(log_path: str) -> None:
    """Truncate a log file, or every log file in a directory."""
    logger.info("Checking log path type: %s", log_path)
    path = Path(log_path)
    if path.is_dir():
        logger.info("Log path is a directory, truncating all log files within")
        truncate_log_directory(log_path)
    elif path.is_file():
        logger.info("Log path is a file, truncating directly")
        truncate_log_file(log_path)
    else:
        logger.warning("Log path does not exist or is not accessible: %s", log_path)
        raise LogError(f"Log path does not exist or is not accessible: {log_path}")


def truncate_service_logs(service_name: str, log_path: str) -> None:
    """Stop a service, truncate its logs and start it again, even if truncation fails."""
    logger.info("Truncating logs for service: %s at path: %s", service_name, log_path)
    systemctl.stop_service(service_name)

    try:
        truncate_log_path(log_path)
    except LogError as exc:
        logger.warning("Log truncation failed: %s", exc)
        try:
            systemctl.start_service(service_name)
        except ServiceError as start_err:
            raise LogError(
                f"Log truncation failed: {exc} AND service restart failed: {start_err}"
            ) from exc
        raise

    systemctl.start_service(service_name)
    logger.info("Service logs truncated successfully for: %s", service_name)