import subprocess
from pathlib import Path

import pytest

from nodekeeper import logs
from nodekeeper.logs import LogError
from nodekeeper.systemctl import ServiceError


def completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args, returncode, stdout, stderr)


class FakeSystem:
    """Stands in for sudo truncate and sudo systemctl."""

    def __init__(self, fail_truncate=False, fail_start=False, fail_stop=False):
        self.fail_truncate = fail_truncate
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.calls = []

    def __call__(self, args, **kwargs):
        args = list(args)
        self.calls.append(args)
        if args[:3] == ["sudo", "truncate", "-s"]:
            if self.fail_truncate:
                return completed(args, 1, "", "permission denied")
            for path in args[4:]:
                Path(path).write_text("")
            return completed(args)
        if args[:2] == ["sudo", "systemctl"]:
            action = args[2]
            if (action == "start" and self.fail_start) or (action == "stop" and self.fail_stop):
                return completed(args, 1, "", f"{action} failed")
            return completed(args)
        raise AssertionError(f"unexpected command {args}")


@pytest.fixture
def system(monkeypatch):
    fake = FakeSystem()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def test_truncate_log_file(tmp_path, system):
    log = tmp_path / "node.log"
    log.write_text("lots of lines\n")
    logs.truncate_log_file(str(log))
    assert log.read_text() == ""
    assert system.calls == [["sudo", "truncate", "-s", "0", str(log)]]


def test_truncate_log_file_failure(tmp_path, system):
    system.fail_truncate = True
    log = tmp_path / "node.log"
    log.write_text("data")
    with pytest.raises(LogError, match="permission denied"):
        logs.truncate_log_file(str(log))
    assert log.read_text() == "data"


def test_truncate_log_directory_only_top_level_logs(tmp_path, system):
    (tmp_path / "a.log").write_text("a")
    (tmp_path / "out1.log").write_text("b")
    (tmp_path / "notes.txt").write_text("keep")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "x.log").write_text("nested")

    truncated = logs.truncate_log_directory(str(tmp_path))

    assert truncated == sorted([str(tmp_path / "a.log"), str(tmp_path / "out1.log")])
    assert (tmp_path / "a.log").read_text() == ""
    assert (tmp_path / "out1.log").read_text() == ""
    assert (tmp_path / "notes.txt").read_text() == "keep"
    assert (tmp_path / "sub" / "x.log").read_text() == "nested"


def test_truncate_log_directory_without_logs(tmp_path, system):
    (tmp_path / "readme").write_text("x")
    assert logs.truncate_log_directory(str(tmp_path)) == []
    assert system.calls == []


def test_truncate_log_directory_missing(tmp_path, system):
    with pytest.raises(LogError, match="Failed to truncate logs in directory"):
        logs.truncate_log_directory(str(tmp_path / "absent"))


def test_delete_all_files_in_directory(tmp_path):
    (tmp_path / "one.log").write_text("1")
    (tmp_path / "two.txt").write_text("2")
    (tmp_path / "keep").mkdir()
    (tmp_path / "keep" / "inner.log").write_text("3")

    assert logs.delete_all_files_in_directory(str(tmp_path)) == 2
    assert [p.name for p in tmp_path.iterdir()] == ["keep"]
    assert (tmp_path / "keep" / "inner.log").exists()


def test_delete_all_files_missing_directory(tmp_path):
    with pytest.raises(LogError, match="Directory does not exist"):
        logs.delete_all_files_in_directory(str(tmp_path / "absent"))


def test_truncate_log_path_dispatches(tmp_path, system):
    log = tmp_path / "node.log"
    log.write_text("x")
    logs.truncate_log_path(str(log))
    logs.truncate_log_path(str(tmp_path))
    assert system.calls == [
        ["sudo", "truncate", "-s", "0", str(log)],
        ["sudo", "truncate", "-s", "0", str(log)],
    ]


def test_truncate_log_path_missing(tmp_path, system):
    with pytest.raises(LogError, match="does not exist or is not accessible"):
        logs.truncate_log_path(str(tmp_path / "absent.log"))
    assert system.calls == []


def test_truncate_service_logs_order(tmp_path, system):
    log = tmp_path / "node.log"
    log.write_text("x")
    logs.truncate_service_logs("node", str(log))
    assert system.calls == [
        ["sudo", "systemctl", "stop", "node"],
        ["sudo", "truncate", "-s", "0", str(log)],
        ["sudo", "systemctl", "start", "node"],
    ]


def test_truncate_service_logs_restarts_after_failure(tmp_path, system):
    with pytest.raises(LogError, match="does not exist"):
        logs.truncate_service_logs("node", str(tmp_path / "absent.log"))
    assert system.calls[-1] == ["sudo", "systemctl", "start", "node"]


def test_truncate_service_logs_reports_both_failures(tmp_path, system):
    system.fail_start = True
    with pytest.raises(LogError) as info:
        logs.truncate_service_logs("node", str(tmp_path / "absent.log"))
    assert "AND service restart failed" in str(info.value)


def test_truncate_service_logs_stop_failure(tmp_path, system):
    system.fail_stop = True
    log = tmp_path / "node.log"
    log.write_text("x")
    with pytest.raises(ServiceError):
        logs.truncate_service_logs("node", str(log))
    assert log.read_text() == "x"