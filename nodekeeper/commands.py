"""Shell helpers the agent uses to move node data around."""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a shell command fails or its output cannot be used."""


def _q(value: str | Path) -> str:
    return shlex.quote(str(value))


def execute_shell_command(command: str) -> str:
    """Run command through sh and return its stdout; raise CommandError on failure."""
    logger.debug("Executing command: %s", command)
    try:
        proc = subprocess.run(
            ["sh", "-c", command], capture_output=True, text=True, errors="replace"
        )
    except OSError as exc:
        raise CommandError(f"Failed to run command: {exc}") from exc
    if proc.returncode == 0:
        return proc.stdout
    raise CommandError(f"Command failed: {proc.stderr or proc.stdout}")


def _succeeds(command: str) -> bool:
    try:
        execute_shell_command(command)
    except CommandError:
        return False
    return True


def _drain(stream: IO[str], label: str) -> None:
    for line in stream:
        logger.info("cosmos-pruner %s: %s", label, line.strip())


def execute_cosmos_pruner(deploy_path: str, keep_blocks: int, keep_versions: int) -> str:
    """Run cosmos-pruner and report its exit code; a non-zero exit is not an error."""
    logger.info(
        "Starting cosmos-pruner: prune '%s' --blocks=%s --versions=%s",
        deploy_path,
        keep_blocks,
        keep_versions,
    )
    args = [
        "cosmos-pruner",
        "prune",
        str(deploy_path),
        "--blocks",
        str(keep_blocks),
        "--versions",
        str(keep_versions),
    ]
    try:
        proc = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise CommandError(f"Failed to spawn cosmos-pruner: {exc}") from exc

    with proc:
        readers = [
            threading.Thread(target=_drain, args=(proc.stdout, "stdout"), daemon=True),
            threading.Thread(target=_drain, args=(proc.stderr, "stderr"), daemon=True),
        ]
        for reader in readers:
            reader.start()
        returncode = proc.wait()
        for reader in readers:
            reader.join()

    exit_code = returncode if returncode >= 0 else -1
    success = returncode == 0
    logger.info(
        "cosmos-pruner process completed with exit code: %d (success: %s)", exit_code, success
    )
    return (
        f"cosmos-pruner completed with exit code: {exit_code} "
        f"(success: {str(success).lower()})"
    )


def create_lz4_compressed_snapshot(backup_path: str, snapshot_dirname: str) -> bool:
    """Pack a snapshot directory into <name>.tar.lz4; failures are logged, not raised."""
    lz4_filename = f"{snapshot_dirname}.tar.lz4"
    lz4_path = f"{backup_path}/{lz4_filename}"
    command = (
        f"tar -cf - -C {_q(backup_path)} {_q(snapshot_dirname)} "
        f"| lz4 -z -c > {_q(lz4_path)}"
    )
    logger.info("Starting background LZ4 compression: %s", lz4_filename)
    logger.debug("LZ4 command: %s", command)
    try:
        proc = subprocess.run(
            ["sh", "-c", command], capture_output=True, text=True, errors="replace"
        )
    except OSError as exc:
        logger.error("Background LZ4 compression error: %s - %s", lz4_filename, exc)
        return False
    if proc.returncode == 0:
        logger.info(
            "Background LZ4 compression completed successfully: %s (exit code: %d)",
            lz4_filename,
            proc.returncode,
        )
        return True
    logger.warning(
        "Background LZ4 compression failed: %s (exit code: %d, stderr: %s)",
        lz4_filename,
        proc.returncode,
        proc.stderr.strip(),
    )
    return False


def create_directory(path: str) -> None:
    """Create a directory and its parents."""
    execute_shell_command(f"mkdir -p {_q(path)}")


def delete_directory(path: str) -> None:
    """Remove a directory tree."""
    logger.info("Deleting directory: %s", path)
    execute_shell_command(f"rm -rf {_q(path)}")
    logger.info("Directory deleted successfully: %s", path)


def remove_file_if_exists(file_path: str) -> bool:
    """Remove a file if present; return whether it was removed."""
    quoted = _q(file_path)
    output = execute_shell_command(
        f"if [ -f {quoted} ]; then rm {quoted} && echo 'removed'; else echo 'not found'; fi"
    )
    logger.debug("Remove result for %s: %s", file_path, output.strip())
    return output.strip() == "removed"


def backup_current_validator_state(source: str, backup_path: str) -> bool:
    """Copy the validator state aside; return whether a state file was found."""
    logger.info("Backing up current validator state from %s to %s", source, backup_path)
    src = _q(source)
    output = execute_shell_command(
        f"if [ -f {src} ]; then cp {src} {_q(backup_path)} && "
        f"echo 'validator_state_backed_up'; else echo 'validator_state_not_found'; fi"
    )
    if "validator_state_backed_up" in output:
        logger.info("Current validator state backed up successfully")
        return True
    logger.info("No current validator state found - will create default after restore")
    return False


def restore_current_validator_state(backup_path: str, destination: str) -> bool:
    """Put a backed-up validator state back; return whether a backup was found."""
    logger.info("Restoring current validator state from %s to %s", backup_path, destination)
    src = _q(backup_path)
    output = execute_shell_command(
        f"if [ -f {src} ]; then cp {src} {_q(destination)} && "
        f"echo 'validator_state_restored'; else echo 'validator_backup_not_found'; fi"
    )
    if "validator_state_restored" in output:
        logger.info("Current validator state restored successfully - signing state preserved")
        return True
    logger.warning("No validator state backup found - node will start with default validator state")
    return False


def _copy_directory(source_path: str, target_path: str, operation_name: str) -> None:
    logger.info(
        "Starting %s - copying from %s to %s", operation_name, source_path, target_path
    )
    execute_shell_command(f"cp -r {_q(source_path)} {_q(target_path)}")
    logger.info("%s completed successfully", operation_name)


def copy_snapshot_directories_mandatory(snapshot_dir: str, target_dir: str) -> None:
    """Copy both data and wasm from a snapshot into target_dir; both must exist."""
    logger.info(
        "Copying both data and wasm directories from %s to %s", snapshot_dir, target_dir
    )
    for name, label in (("data", "Data restore"), ("wasm", "Wasm restore")):
        source = f"{snapshot_dir}/{name}"
        if not _succeeds(f"test -d {_q(source)}"):
            raise CommandError(f"CRITICAL: {name} directory missing from snapshot: {source}")
        _copy_directory(source, f"{target_dir}/{name}", label)
    logger.info("Copy completed - both data and wasm directories copied successfully")


def copy_directories_to_snapshot_mandatory(
    source_dir: str, snapshot_dir: str, directories: Sequence[str]
) -> None:
    """Copy each named directory into snapshot_dir, checking before and after."""
    logger.info(
        "Copying directories %s from %s to snapshot %s", list(directories), source_dir, snapshot_dir
    )
    for name in directories:
        source = f"{source_dir}/{name}"
        target = f"{snapshot_dir}/{name}"
        if not _succeeds(f"test -d {_q(source)}"):
            raise CommandError(f"CRITICAL: Source {name} directory missing at: {source}")
        try:
            _copy_directory(source, target, f"{name} snapshot copy")
        except CommandError as exc:
            raise CommandError(f"CRITICAL: Failed to copy {name} directory: {exc}") from exc
        if not _succeeds(f"test -d {_q(target)}"):
            raise CommandError(
                f"CRITICAL: {name} directory not found after copy at: {target}"
            )
        logger.info("Successfully copied %s directory to snapshot", name)
    logger.info("Directory copying to snapshot completed successfully")


def get_directory_size(dir_path: str) -> int:
    """Return the apparent size in bytes of a directory tree."""
    output = execute_shell_command(f"du -sb {_q(dir_path)} | cut -f1")
    try:
        return int(output.strip())
    except ValueError as exc:
        raise CommandError(f"Failed to parse directory size: {output.strip()!r}") from exc


def check_log_for_trigger_words(log_file: str, trigger_words: Iterable[str]) -> bool:
    """Return whether any trigger word occurs in the last 1000 lines of log_file."""
    words = list(trigger_words)
    if not words:
        return False
    pattern = "|".join(words)
    command = f"tail -n 1000 {_q(log_file)} | grep -q -E {_q(pattern)}"
    logger.debug("Checking log for trigger words: %s", command)
    if _succeeds(command):
        logger.info("Auto-restore trigger words found in log: %s", log_file)
        return True
    logger.debug("No trigger words found in log: %s", log_file)
    return False