import os
import tarfile
from pathlib import Path

import pytest

from nodekeeper import commands
from nodekeeper.commands import CommandError


def _tool(bin_dir: Path, name: str, body: str) -> Path:
    bin_dir.mkdir(exist_ok=True)
    script = bin_dir / name
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)
    return script


@pytest.fixture
def fake_bin(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir


def _node_home(root: Path) -> Path:
    (root / "data").mkdir(parents=True)
    (root / "wasm").mkdir()
    (root / "data" / "blocks.db").write_bytes(b"x" * 3000)
    (root / "wasm" / "code.wasm").write_bytes(b"w" * 100)
    return root


def test_execute_shell_command_returns_stdout():
    assert commands.execute_shell_command("echo hello") == "hello\n"


def test_execute_shell_command_failure_uses_stderr():
    with pytest.raises(CommandError) as info:
        commands.execute_shell_command("echo oops >&2; exit 2")
    assert str(info.value) == "Command failed: oops\n"


def test_execute_shell_command_failure_falls_back_to_stdout():
    with pytest.raises(CommandError) as info:
        commands.execute_shell_command("echo only-out; exit 1")
    assert "only-out" in str(info.value)


def test_create_and_delete_directory(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    commands.create_directory(str(target))
    assert target.is_dir()
    commands.delete_directory(str(tmp_path / "a"))
    assert not (tmp_path / "a").exists()


def test_remove_file_if_exists(tmp_path):
    victim = tmp_path / "state.json"
    victim.write_text("{}")
    assert commands.remove_file_if_exists(str(victim)) is True
    assert not victim.exists()
    assert commands.remove_file_if_exists(str(victim)) is False


def test_validator_state_backup_and_restore_round_trip(tmp_path):
    state = tmp_path / "priv_validator_state.json"
    backup = tmp_path / "backup.json"
    state.write_text('{"height": "42"}')
    assert commands.backup_current_validator_state(str(state), str(backup)) is True
    state.write_text('{"height": "1"}')
    assert commands.restore_current_validator_state(str(backup), str(state)) is True
    assert state.read_text() == '{"height": "42"}'


def test_validator_state_missing(tmp_path):
    missing = tmp_path / "nope.json"
    backup = tmp_path / "backup.json"
    assert commands.backup_current_validator_state(str(missing), str(backup)) is False
    assert not backup.exists()
    assert commands.restore_current_validator_state(str(backup), str(missing)) is False
    assert not missing.exists()


def test_copy_snapshot_directories_mandatory(tmp_path):
    snapshot = _node_home(tmp_path / "snap")
    target = tmp_path / "home"
    target.mkdir()
    commands.copy_snapshot_directories_mandatory(str(snapshot), str(target))
    assert (target / "data" / "blocks.db").read_bytes() == (snapshot / "data" / "blocks.db").read_bytes()
    assert (target / "wasm" / "code.wasm").exists()


def test_copy_snapshot_directories_requires_wasm(tmp_path):
    snapshot = tmp_path / "snap"
    (snapshot / "data").mkdir(parents=True)
    target = tmp_path / "home"
    target.mkdir()
    with pytest.raises(CommandError) as info:
        commands.copy_snapshot_directories_mandatory(str(snapshot), str(target))
    assert "CRITICAL: wasm directory missing from snapshot" in str(info.value)
    assert (target / "data").is_dir()


def test_copy_directories_to_snapshot(tmp_path):
    home = _node_home(tmp_path / "home")
    snapshot = tmp_path / "snap"
    snapshot.mkdir()
    commands.copy_directories_to_snapshot_mandatory(str(home), str(snapshot), ["data", "wasm"])
    assert sorted(p.name for p in snapshot.iterdir()) == ["data", "wasm"]


def test_copy_directories_to_snapshot_missing_source(tmp_path):
    home = tmp_path / "home"
    (home / "data").mkdir(parents=True)
    snapshot = tmp_path / "snap"
    snapshot.mkdir()
    with pytest.raises(CommandError) as info:
        commands.copy_directories_to_snapshot_mandatory(str(home), str(snapshot), ["data", "wasm"])
    assert "CRITICAL: Source wasm directory missing at" in str(info.value)


def test_get_directory_size_counts_contents(tmp_path):
    (tmp_path / "blob").write_bytes(b"z" * 2048)
    assert commands.get_directory_size(str(tmp_path)) >= 2048


def test_get_directory_size_missing_directory(tmp_path):
    with pytest.raises(CommandError, match="Failed to parse directory size"):
        commands.get_directory_size(str(tmp_path / "absent"))


def test_check_log_for_trigger_words(tmp_path):
    log = tmp_path / "node.log"
    log.write_text("starting\nAPP HASH mismatch detected\n")
    assert commands.check_log_for_trigger_words(str(log), ["panic", "mismatch"]) is True
    assert commands.check_log_for_trigger_words(str(log), ["panic"]) is False
    assert commands.check_log_for_trigger_words(str(log), []) is False


def test_execute_cosmos_pruner_reports_exit_code(tmp_path, fake_bin):
    _tool(fake_bin, "cosmos-pruner", 'echo "$@" > "$(dirname "$0")/args.txt"\necho pruning\nexit 3\n')
    result = commands.execute_cosmos_pruner(str(tmp_path), 10, 20)
    assert result == "cosmos-pruner completed with exit code: 3 (success: false)"
    assert (fake_bin / "args.txt").read_text().split() == [
        "prune", str(tmp_path), "--blocks", "10", "--versions", "20"
    ]


def test_execute_cosmos_pruner_success(tmp_path, fake_bin):
    _tool(fake_bin, "cosmos-pruner", "exit 0\n")
    result = commands.execute_cosmos_pruner(str(tmp_path), 1, 1)
    assert result.endswith("(success: true)")


def test_execute_cosmos_pruner_missing_binary(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(CommandError, match="Failed to spawn cosmos-pruner"):
        commands.execute_cosmos_pruner(str(tmp_path), 1, 1)


def test_create_lz4_compressed_snapshot(tmp_path, fake_bin):
    _tool(fake_bin, "lz4", "cat\n")
    backup = tmp_path / "backups"
    (backup / "net_1" / "data").mkdir(parents=True)
    (backup / "net_1" / "data" / "f.txt").write_text("content")
    assert commands.create_lz4_compressed_snapshot(str(backup), "net_1") is True
    with tarfile.open(backup / "net_1.tar.lz4") as archive:
        assert "net_1/data/f.txt" in archive.getnames()


def test_create_lz4_compressed_snapshot_failure(tmp_path, fake_bin):
    _tool(fake_bin, "lz4", "cat > /dev/null\nexit 1\n")
    backup = tmp_path / "backups"
    (backup / "net_1").mkdir(parents=True)
    assert commands.create_lz4_compressed_snapshot(str(backup), "net_1") is False