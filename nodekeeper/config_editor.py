"""Edits to the [statesync] section of a node's config.toml."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

_SECTION = "[statesync]"
_TRUST_PERIOD = "168h0m0s"


class ConfigEditError(Exception):
    """Raised when the config file cannot be read or written."""


def _section_bounds(content: str) -> tuple[int, int] | None:
    start = content.find(_SECTION)
    if start < 0:
        return None
    next_section = content.find("\n[", start + len(_SECTION))
    return start, next_section if next_section >= 0 else len(content)


def _lines(text: str) -> list[str]:
    if not text:
        return []
    parts = text.split("\n")
    if text.endswith("\n"):
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _sets_key(trimmed: str, key: str) -> bool:
    return trimmed.startswith(f"{key} ") or trimmed.startswith(f"{key}=")


def enable_state_sync_text(
    content: str, rpc_servers: Iterable[str], trust_height: int, trust_hash: str
) -> str:
    """Return content with state sync switched on and its parameters set."""
    servers = ",".join(rpc_servers)
    settings = {
        "enable": "enable = true",
        "rpc_servers": f'rpc_servers = "{servers}"',
        "trust_height": f"trust_height = {trust_height}",
        "trust_hash": f'trust_hash = "{trust_hash}"',
        "trust_period": f'trust_period = "{_TRUST_PERIOD}"',
    }

    bounds = _section_bounds(content)
    if bounds is None:
        appended = "".join(f"{line}\n" for line in settings.values())
        return f"{content}\n\n{_SECTION}\n{appended}"

    start, end = bounds
    new_lines = [_SECTION]
    for line in _lines(content[start:end])[1:]:
        trimmed = line.strip()
        replacement = next(
            (value for key, value in settings.items() if _sets_key(trimmed, key)), None
        )
        if replacement is not None:
            new_lines.append(replacement)
        elif trimmed and not trimmed.startswith("#"):
            new_lines.append(line)
    new_section = "".join(f"{line}\n" for line in new_lines)
    return content[:start] + new_section + content[end:]


def disable_state_sync_text(content: str) -> str:
    """Return content with state sync switched off; unchanged if there is no section."""
    bounds = _section_bounds(content)
    if bounds is None:
        return content

    start, end = bounds
    new_lines = [_SECTION]
    for line in _lines(content[start:end])[1:]:
        trimmed = line.strip()
        if _sets_key(trimmed, "enable"):
            new_lines.append("enable = false")
        elif trimmed:
            new_lines.append(line)
    new_section = "".join(f"{line}\n" for line in new_lines)
    return content[:start] + new_section + content[end:]


def _read(config_path: str | Path) -> str:
    try:
        return Path(config_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigEditError(f"Failed to read config file: {exc}") from exc


def _write(config_path: str | Path, content: str) -> None:
    try:
        Path(config_path).write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ConfigEditError(f"Failed to write config file: {exc}") from exc


def enable_state_sync(
    config_path: str | Path, rpc_servers: Iterable[str], trust_height: int, trust_hash: str
) -> None:
    """Enable state sync in the config file at config_path."""
    logger.info("Enabling state sync in %s", config_path)
    content = _read(config_path)
    _write(config_path, enable_state_sync_text(content, rpc_servers, trust_height, trust_hash))
    logger.info("State sync enabled in config")


def disable_state_sync(config_path: str | Path) -> None:
    """Disable state sync in the config file at config_path."""
    logger.info("Disabling state sync in %s", config_path)
    content = _read(config_path)
    if _section_bounds(content) is None:
        logger.info("No [statesync] section found, nothing to disable")
        return
    _write(config_path, disable_state_sync_text(content))
    logger.info("State sync disabled in config")