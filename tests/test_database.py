from datetime import datetime, timedelta, timezone

import pytest

from nodekeeper.database import Database, DatabaseError, HealthRecord, MaintenanceOperation


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def db(tmp_path):
    database = Database.open(tmp_path / "sub" / "manager.db")
    yield database
    database.close()


def _op(op_id, status="completed", started_at=None, target="node-a", **extra):
    return MaintenanceOperation(
        id=op_id,
        operation_type="pruning",
        target_name=target,
        status=status,
        started_at=started_at or _now(),
        **extra,
    )


def test_open_creates_parent_directory(tmp_path):
    path = tmp_path / "a" / "b" / "db.sqlite"
    with Database.open(path) as database:
        assert path.exists()
        assert database.get_maintenance_operations(None) == []


def test_self_test_record_is_removed(db):
    assert db.get_latest_health_record("test-node") is None


def test_open_fails_when_parent_is_a_file(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(DatabaseError):
        Database.open(blocker / "db.sqlite")


def test_health_record_round_trip(db):
    stamp = _now().replace(microsecond=123456)
    record = HealthRecord(
        node_name="node-a",
        is_healthy=False,
        timestamp=stamp,
        error_message="rpc unreachable",
        block_height=12345,
        is_syncing=1,
        is_catching_up=0,
        validator_address="validator-x",
    )
    db.store_health_record(record)
    assert db.get_latest_health_record("node-a") == record


def test_latest_health_record_is_newest(db):
    base = _now()
    db.store_health_record(HealthRecord("node-a", True, base - timedelta(minutes=5), block_height=1))
    db.store_health_record(HealthRecord("node-a", False, base, block_height=2))
    db.store_health_record(HealthRecord("node-b", True, base + timedelta(minutes=1), block_height=3))
    latest = db.get_latest_health_record("node-a")
    assert latest.block_height == 2
    assert latest.is_healthy is False


def test_missing_node_has_no_record(db):
    assert db.get_latest_health_record("nobody") is None


def test_store_maintenance_operation_replaces_same_id(db):
    started = _now()
    db.store_maintenance_operation(_op("op1", status="running", started_at=started))
    finished = _op(
        "op1",
        status="completed",
        started_at=started,
        completed_at=started + timedelta(minutes=3),
        details="done",
    )
    db.store_maintenance_operation(finished)
    ops = db.get_maintenance_operations(None)
    assert ops == [finished]


def test_operations_are_newest_first_and_limited(db):
    base = _now()
    for offset in range(5):
        db.store_maintenance_operation(_op(f"op{offset}", started_at=base + timedelta(seconds=offset)))
    ops = db.get_maintenance_operations(3)
    assert [op.id for op in ops] == ["op4", "op3", "op2"]
    assert len(db.get_maintenance_operations(None)) == 5


def test_cleanup_marks_old_running_operations_failed(db):
    old = _now() - timedelta(hours=2)
    db.store_maintenance_operation(_op("stuck1", status="running", started_at=old))
    db.store_maintenance_operation(_op("stuck2", status="started", started_at=old))
    db.store_maintenance_operation(_op("fresh", status="running"))
    db.store_maintenance_operation(_op("done", status="completed", started_at=old))

    assert db.cleanup_stuck_maintenance_operations() == 2

    by_id = {op.id: op for op in db.get_maintenance_operations(None)}
    assert by_id["stuck1"].status == "failed"
    assert by_id["stuck2"].status == "failed"
    assert by_id["stuck1"].completed_at is not None
    assert "startup cleanup" in by_id["stuck1"].error_message
    assert by_id["fresh"].status == "running"
    assert by_id["done"].status == "completed"
    assert db.cleanup_stuck_maintenance_operations() == 0


def test_reopen_cleans_stuck_operations(tmp_path):
    path = tmp_path / "db.sqlite"
    with Database.open(path) as database:
        database.store_maintenance_operation(
            _op("stuck", status="running", started_at=_now() - timedelta(hours=3))
        )
    with Database.open(path) as database:
        (op,) = database.get_maintenance_operations(None)
        assert op.status == "failed"


def test_naive_timestamp_is_treated_as_utc(db):
    naive = datetime(2024, 1, 2, 3, 4, 5)
    db.store_health_record(HealthRecord("node-n", True, naive))
    record = db.get_latest_health_record("node-n")
    assert record.timestamp == naive.replace(tzinfo=timezone.utc)


def test_use_after_close_raises(tmp_path):
    database = Database.open(tmp_path / "db.sqlite")
    database.close()
    with pytest.raises(DatabaseError):
        database.get_maintenance_operations(None)