"""
Generic waiting for long-running operations.

Usage:
    from osclient.waiter import wait_for

    server = await wait_for(
        probe,
        target_states={"ACTIVE"},
        failure_states={"ERROR"},
        interval=5,
        timeout=1800,
    )
"""

from osclient.waiter.waiter import (
    DEFAULT_MAX_INTERVAL_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_WAIT_TIMEOUT_SECONDS,
    DELETED,
    BackoffPolicy,
    Waiter,
    WaitSpec,
    WaitState,
    default_state_of,
    wait_for,
    wait_for_deletion,
)

__all__ = [
    "Waiter",
    "WaitSpec",
    "WaitState",
    "BackoffPolicy",
    "wait_for",
    "wait_for_deletion",
    "default_state_of",
    "DELETED",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_WAIT_TIMEOUT_SECONDS",
    "DEFAULT_MAX_INTERVAL_SECONDS",
]
