"""
Polling state machine for long-running server-side operations.

States:
    POLLING → SUCCESS | FAILED | TIMED_OUT | CANCELLED

The waiter repeatedly calls a caller-supplied probe to re-fetch an entity and
compares its state against the target and failure sets. Between probes it
suspends through a delay primitive; the cancel signal is checked before and
after every delay, and the default delay wakes up as soon as it is set.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from osclient.errors.exceptions import Cancelled, NotFound, WaitFailedState, WaitTimeout
from osclient.types import Sleeper

logger = logging.getLogger(__name__)

# Defaults for status polling
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 600.0
DEFAULT_MAX_INTERVAL_SECONDS = 30.0

DELETED = "DELETED"

Probe = Callable[[], Any] | Callable[[], Awaitable[Any]]


class WaitState(Enum):
    """Lifecycle of one wait."""

    POLLING = "polling"
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not WaitState.POLLING


@dataclass(frozen=True)
class BackoffPolicy:
    """Grows the poll interval by ``multiplier`` up to ``max_interval``."""

    multiplier: float = 2.0
    max_interval: float = DEFAULT_MAX_INTERVAL_SECONDS

    def __post_init__(self):
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {self.multiplier}")
        if self.max_interval <= 0:
            raise ValueError(f"max_interval must be positive, got {self.max_interval}")

    def next_interval(self, current: float) -> float:
        return min(current * self.multiplier, self.max_interval)


@dataclass(frozen=True)
class WaitSpec:
    """
    What to wait for and for how long.

    Attributes:
        target_states: States that end the wait successfully
        failure_states: States that end the wait with WaitFailedState
        interval: Initial delay between probes in seconds
        timeout: Overall limit in seconds; None waits forever
        backoff: Optional interval growth policy
    """

    target_states: frozenset[Any]
    failure_states: frozenset[Any] = frozenset()
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout: float | None = DEFAULT_WAIT_TIMEOUT_SECONDS
    backoff: BackoffPolicy | None = None

    def __post_init__(self):
        object.__setattr__(self, "target_states", frozenset(self.target_states))
        object.__setattr__(self, "failure_states", frozenset(self.failure_states))
        if not self.target_states:
            raise ValueError("At least one target state is required")
        overlap = self.target_states & self.failure_states
        if overlap:
            raise ValueError(f"States cannot be both target and failure: {sorted(map(str, overlap))}")
        if self.interval < 0:
            raise ValueError(f"interval must be >= 0, got {self.interval}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive or None, got {self.timeout}")


def default_state_of(entity: Any) -> Any:
    """Read ``status`` from a mapping or attribute, else use the value itself."""
    if isinstance(entity, Mapping):
        return entity.get("status")
    status = getattr(entity, "status", None)
    if status is not None:
        return status
    return entity


async def interruptible_sleep(delay: float, cancel: asyncio.Event | None) -> None:
    """Sleep for ``delay`` seconds, returning early when ``cancel`` is set."""
    if cancel is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


class Waiter:
    """
    Drives one wait from POLLING to a terminal state.

    Usage:
        async def probe():
            response = await executor.get(f"/servers/{server_id}", service_type="compute")
            return response.json()["server"]

        waiter = Waiter(probe, WaitSpec(target_states={"ACTIVE"}, failure_states={"ERROR"}))
        server = await waiter.wait()
    """

    def __init__(
        self,
        probe: Probe,
        spec: WaitSpec,
        state_of: Callable[[Any], Any] = default_state_of,
        sleep: Sleeper | None = None,
        clock: Callable[[], float] = time.monotonic,
        description: str = "entity",
    ):
        """
        Initialize the waiter.

        Args:
            probe: Re-fetches the entity (sync or async callable)
            spec: Target/failure states, interval, timeout and backoff
            state_of: Extracts the state from a probed entity
            sleep: Delay primitive; defaults to a sleep the cancel event can interrupt
            clock: Monotonic clock in seconds
            description: Name used in log and error messages
        """
        self.probe = probe
        self.spec = spec
        self.state_of = state_of
        self.clock = clock
        self.description = description
        self._sleep = sleep

        self.state = WaitState.POLLING
        self.probes = 0
        self.last_state: Any = None
        self.last_entity: Any = None

    async def _probe(self) -> Any:
        result = self.probe()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _delay(self, delay: float, cancel: asyncio.Event | None) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
        else:
            await interruptible_sleep(delay, cancel)

    def _check_cancel(self, cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            self.state = WaitState.CANCELLED
            logger.info(
                "Wait for %s cancelled",
                self.description,
                extra={"wait_state": self.state, "probes": self.probes},
            )
            raise Cancelled(
                f"Wait for {self.description} cancelled after {self.probes} probes",
                context={"last_state": self.last_state, "probes": self.probes},
            )

    def _timed_out(self, state: Any, elapsed: float) -> WaitTimeout:
        self.state = WaitState.TIMED_OUT
        logger.warning(
            "Timeout waiting for %s",
            self.description,
            extra={
                "wait_state": self.state,
                "probes": self.probes,
                "elapsed_seconds": elapsed,
            },
        )
        return WaitTimeout(
            f"Timeout waiting for {self.description} to reach "
            f"{sorted(map(str, self.spec.target_states))}, current is {state!r}",
            last_state=state,
            elapsed=elapsed,
            probes=self.probes,
        )

    async def wait(self, cancel: asyncio.Event | None = None) -> Any:
        """
        Poll until the entity reaches a terminal state.

        Args:
            cancel: Event that aborts the wait when set

        Returns:
            The entity as returned by the probe that observed a target state

        Raises:
            WaitFailedState: If a failure state is observed
            WaitTimeout: If the timeout elapses first
            Cancelled: If the cancel event is set
        """
        if self.state is not WaitState.POLLING:
            raise RuntimeError(f"Waiter already finished in state {self.state.value}")

        spec = self.spec
        interval = spec.interval
        started = self.clock()

        try:
            while True:
                self._check_cancel(cancel)

                try:
                    entity = await self._probe()
                except Exception:
                    self.state = WaitState.FAILED
                    raise
                self.probes += 1
                state = self.state_of(entity)
                self.last_state = state
                self.last_entity = entity

                if state in spec.target_states:
                    self.state = WaitState.SUCCESS
                    logger.debug(
                        "%s reached %s",
                        self.description,
                        state,
                        extra={"wait_state": self.state, "probes": self.probes},
                    )
                    return entity

                if state in spec.failure_states:
                    self.state = WaitState.FAILED
                    logger.debug(
                        "%s got into failure state %s",
                        self.description,
                        state,
                        extra={"wait_state": self.state, "probes": self.probes},
                    )
                    raise WaitFailedState(
                        state,
                        entity=entity,
                        message=f"{self.description} reached failure state {state!r}",
                    )

                elapsed = self.clock() - started
                if spec.timeout is not None and elapsed >= spec.timeout:
                    raise self._timed_out(state, elapsed)

                delay = interval
                if spec.timeout is not None:
                    # Never sleep past the deadline
                    delay = min(interval, spec.timeout - elapsed)

                logger.debug(
                    "Still waiting for %s, current state is %s",
                    self.description,
                    state,
                    extra={"probes": self.probes, "interval_seconds": delay},
                )
                self._check_cancel(cancel)
                await self._delay(delay, cancel)
                self._check_cancel(cancel)

                elapsed = self.clock() - started
                if spec.timeout is not None and elapsed >= spec.timeout:
                    raise self._timed_out(state, elapsed)

                if spec.backoff is not None:
                    interval = spec.backoff.next_interval(interval)

        except asyncio.CancelledError:
            self.state = WaitState.CANCELLED
            raise


async def wait_for(
    probe: Probe,
    target_states: Iterable[Any],
    failure_states: Iterable[Any] = (),
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout: float | None = DEFAULT_WAIT_TIMEOUT_SECONDS,
    cancel: asyncio.Event | None = None,
    backoff: BackoffPolicy | None = None,
    state_of: Callable[[Any], Any] = default_state_of,
    sleep: Sleeper | None = None,
    description: str = "entity",
) -> Any:
    """
    Wait until ``probe()`` reports one of ``target_states``.

    Example:
        server = await wait_for(
            probe,
            target_states={"ACTIVE"},
            failure_states={"ERROR"},
            interval=5,
            timeout=1800,
        )
    """
    spec = WaitSpec(
        target_states=frozenset(target_states),
        failure_states=frozenset(failure_states),
        interval=interval,
        timeout=timeout,
        backoff=backoff,
    )
    waiter = Waiter(probe, spec, state_of=state_of, sleep=sleep, description=description)
    return await waiter.wait(cancel)


async def wait_for_deletion(
    probe: Probe,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout: float | None = 120.0,
    cancel: asyncio.Event | None = None,
    failure_states: Iterable[Any] = (),
    state_of: Callable[[Any], Any] = default_state_of,
    sleep: Sleeper | None = None,
    description: str = "entity",
) -> None:
    """
    Wait until the probe raises NotFound.

    Raises:
        WaitFailedState: If the entity reports a failure state instead
        WaitTimeout: If the entity still exists after the timeout
        Cancelled: If the cancel event is set
    """

    async def deletion_probe() -> Any:
        try:
            result = probe()
            if inspect.isawaitable(result):
                result = await result
        except NotFound:
            return DELETED
        return result

    def deletion_state(entity: Any) -> Any:
        return DELETED if entity == DELETED else state_of(entity)

    await wait_for(
        deletion_probe,
        target_states={DELETED},
        failure_states=failure_states,
        interval=interval,
        timeout=timeout,
        cancel=cancel,
        state_of=deletion_state,
        sleep=sleep,
        description=description,
    )


__all__ = [
    "WaitState",
    "WaitSpec",
    "BackoffPolicy",
    "Waiter",
    "wait_for",
    "wait_for_deletion",
    "default_state_of",
    "interruptible_sleep",
    "DELETED",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_WAIT_TIMEOUT_SECONDS",
    "DEFAULT_MAX_INTERVAL_SECONDS",
]
