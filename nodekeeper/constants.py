"""Timeouts, limits and defaults shared across the manager."""

from datetime import timedelta


class Http:
    """HTTP client timings for talking to agents."""

    REQUEST_TIMEOUT = timedelta(seconds=30)
    CONNECT_TIMEOUT = timedelta(seconds=10)
    JOB_POLL_INTERVAL = timedelta(seconds=10)
    MAX_JOB_WAIT = timedelta(hours=24)


class OperationTimeouts:
    """Upper bounds and pauses for maintenance operations."""

    PRUNING_HOURS = 5
    SNAPSHOT_CREATION_HOURS = 24
    SNAPSHOT_RESTORE_HOURS = 24
    STATE_SYNC_HOURS = 24
    NODE_RESTART_MINUTES = 30
    HERMES_RESTART_MINUTES = 15
    NODE_RESTART_SLEEP_SECONDS = 5
    HERMES_RESTART_SLEEP_SECONDS = 3


class Cleanup:
    """Ages after which stuck state is cleared."""

    OPERATION_CLEANUP_HOURS = 24
    MAINTENANCE_CLEANUP_HOURS = 48
    MAINTENANCE_MAX_HOURS = 48
    JOB_CLEANUP_HOURS = 48
    CLEANUP_INTERVAL_SECONDS = 3600


class Alerts:
    """Alert escalation schedule."""

    FIRST_ALERT_AFTER_CHECKS = 3
    SECOND_ALERT_INTERVAL_HOURS = 6
    THIRD_ALERT_INTERVAL_HOURS = 6
    FOURTH_ALERT_INTERVAL_HOURS = 12
    SUBSEQUENT_ALERT_INTERVAL_HOURS = 24
    WEBHOOK_TIMEOUT_SECONDS = 10
    AUTO_RESTORE_COOLDOWN_HOURS = 2


class Defaults:
    """Default configuration values."""

    HEALTH_CHECK_INTERVAL_SECONDS = 90
    RPC_TIMEOUT_SECONDS = 10
    SERVER_REQUEST_TIMEOUT_SECONDS = 300
    STATE_SYNC_TRUST_HEIGHT_OFFSET = 2000
    STATE_SYNC_MAX_TIMEOUT_SECONDS = 600
    HERMES_MIN_UPTIME_MINUTES = 5


class Limits:
    """Limits on queries, concurrency and retries."""

    MAX_MAINTENANCE_OPERATIONS = 100
    MAX_CONCURRENT_OPERATIONS = 5
    MAX_RETRY_ATTEMPTS = 3


class Agent:
    """Agent server defaults."""

    DEFAULT_PORT = 8745
    DEFAULT_BIND_ADDRESS = "0.0.0.0:8745"