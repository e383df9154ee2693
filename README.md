# nodekeeper

Building blocks for looking after blockchain nodes that run as systemd
services: pruning, snapshot creation and restore, state sync, log truncation,
job tracking, configuration loading and a small SQLite store for health
records and maintenance history. Everything is plain synchronous Python.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## What is inside

- `nodekeeper.types`: request and response records (`CommandRequest`,
  `ServiceRequest`, `LogTruncateRequest`, `LogDeleteAllRequest`,
  `PruningRequest`, `SnapshotRequest`, `RestoreRequest`, `StateSyncRequest`,
  `JobInfo`, `AsyncResponse`, `ApiResponse`, `SnapshotInfo`). Requests are
  read from plain dictionaries with `from_dict`, which raises `ValueError` on
  missing fields or wrong types. `ApiResponse.to_dict()` leaves out every
  field that is `None`.
- `nodekeeper.constants`: timeouts, limits and defaults grouped in the
  classes `Http`, `OperationTimeouts`, `Cleanup`, `Alerts`, `Defaults`,
  `Limits` and `Agent`.
- `nodekeeper.job_manager.JobManager`: thread-safe in-memory tracking of
  background jobs (`create_job`, `complete_job`, `fail_job`,
  `get_job_status`, `get_running_jobs`, `cleanup_old_jobs`).
- `nodekeeper.config_editor`: switches the `[statesync]` section of a node's
  `config.toml` on and off, either on text (`enable_state_sync_text`,
  `disable_state_sync_text`) or on a file (`enable_state_sync`,
  `disable_state_sync`). File errors raise `ConfigEditError`.
- `nodekeeper.commands`: shell helpers (`execute_shell_command`,
  `execute_cosmos_pruner`, directory copy, size and removal helpers,
  validator-state backup and restore, `check_log_for_trigger_words`,
  `create_lz4_compressed_snapshot`). Failures raise `CommandError`.
- `nodekeeper.systemctl`: `get_service_status`, `start_service`,
  `stop_service` and `get_service_uptime`; failures raise `ServiceError`.
- `nodekeeper.logs`: truncation of a log file or of every `*.log` file in a
  directory, deletion of all files in a directory, and
  `truncate_service_logs`, which stops a service, truncates and starts it
  again. Failures raise `LogError`.
- `nodekeeper.operations`: the complete sequences
  `pruning.execute_full_pruning_sequence`,
  `snapshots.execute_full_snapshot_sequence`,
  `restore.execute_full_restore_sequence` and
  `state_sync.execute_state_sync_sequence`. A sequence that cannot finish
  raises `OperationError` (defined in `nodekeeper.operations.pruning`).
- `nodekeeper.config.models` and `nodekeeper.config.loader`: configuration
  records and the loader for a directory of TOML files.
- `nodekeeper.database.Database`: SQLite storage of health records and
  maintenance operations.

## Example

```python
from nodekeeper.job_manager import JobManager
from nodekeeper.operations.pruning import execute_full_pruning_sequence
from nodekeeper.types import PruningRequest

jobs = JobManager()
request = PruningRequest.from_dict(
    {
        "deploy_path": "/opt/deploy/node-1",
        "keep_blocks": 1000,
        "keep_versions": 1000,
        "service_name": "node-1",
        "log_path": "/var/log/node-1",
    }
)
job_id = jobs.create_job("pruning", "node-1")
try:
    summary = execute_full_pruning_sequence(request)
except Exception as exc:
    jobs.fail_job(job_id, str(exc))
else:
    jobs.complete_job(job_id, summary)

print(jobs.get_job_status(job_id).status)
```

The operations call `systemctl`, `sudo`, `cosmos-pruner`, `du`, `cp` and
other ordinary shell tools, so they are meant to run on the host that carries
the node, with the rights those tools need. The restore sequence also changes
file ownership, which usually needs root.

## Loading configuration

```python
from nodekeeper.config.loader import ConfigManager

manager = ConfigManager.load("/etc/nodekeeper")
config = manager.current_config
print(sorted(config.nodes))
```

The directory holds `main.toml` and one `<server>.toml` per server. Node,
Hermes and ETL names get the server name as a prefix unless they already
start with it. A node whose `network` is empty or `auto` has it read from its
RPC `/status` endpoint (`fetch_network_from_rpc`); if that fails a warning is
logged and the node is kept as it is. Unset node paths are derived from the
server file's `[defaults]` base paths. Invalid data raises `ConfigError`.

## Database

```python
from datetime import datetime, timezone

from nodekeeper.database import Database, HealthRecord

with Database.open("/var/lib/nodekeeper/health.db") as db:
    db.store_health_record(
        HealthRecord(node_name="node-1", is_healthy=True, timestamp=datetime.now(timezone.utc))
    )
    latest = db.get_latest_health_record("node-1")
```

Opening the database creates its tables and marks operations left in
`running` or `started` for more than an hour as `failed`.
`get_maintenance_operations` returns the newest operations first, 100 by
default.

## What it does not do

The package has no command-line program, no HTTP agent or manager server and
no scheduler. It offers the pieces such programs are built from; running
them on a timer or behind an API is left to the caller.