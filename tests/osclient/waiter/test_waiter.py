"""
Tests for the Waiter state machine.

Tests cover:
- Success, failure and timeout transitions with probe counts
- Cancellation before the first probe, before and after a delay
- Interruptible default delay and task cancellation
- Bounded backoff growth
- Probe errors, sync probes and state extraction
- Deletion waiting
"""

import asyncio
from types import SimpleNamespace

import pytest

from osclient.errors.exceptions import (
    Cancelled,
    NotFound,
    ServerError,
    WaitFailedState,
    WaitTimeout,
)
from osclient.waiter.waiter import (
    BackoffPolicy,
    Waiter,
    WaitSpec,
    WaitState,
    default_state_of,
    wait_for,
    wait_for_deletion,
)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.delays = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.delays.append(delay)
        self.now += delay


def sequence_probe(*states):
    """Probe returning ``{"status": state}`` for each state, repeating the last."""
    remaining = list(states)
    calls = []

    async def probe():
        state = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        calls.append(state)
        return {"id": "srv-1", "status": state}

    probe.calls = calls
    return probe


def make_waiter(probe, clock, **spec_kwargs):
    spec_kwargs.setdefault("target_states", {"ACTIVE"})
    spec_kwargs.setdefault("failure_states", {"ERROR"})
    spec_kwargs.setdefault("interval", 0.1)
    spec_kwargs.setdefault("timeout", 10.0)
    return Waiter(probe, WaitSpec(**spec_kwargs), sleep=clock.sleep, clock=clock)


class TestTransitions:
    @pytest.mark.asyncio
    async def test_reaches_target_state(self):
        clock = FakeClock()
        probe = sequence_probe("BUILD", "BUILD", "ACTIVE")
        waiter = make_waiter(probe, clock)

        entity = await waiter.wait()

        assert entity == {"id": "srv-1", "status": "ACTIVE"}
        assert waiter.state is WaitState.SUCCESS
        assert waiter.probes == 3
        assert clock.delays == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_failure_state_raises(self):
        clock = FakeClock()
        waiter = make_waiter(sequence_probe("BUILD", "ERROR"), clock)

        with pytest.raises(WaitFailedState) as exc_info:
            await waiter.wait()

        assert exc_info.value.state == "ERROR"
        assert exc_info.value.entity["status"] == "ERROR"
        assert waiter.state is WaitState.FAILED
        assert waiter.probes == 2

    @pytest.mark.asyncio
    async def test_timeout_bounds_probe_count(self):
        clock = FakeClock()
        waiter = make_waiter(sequence_probe("BUILD"), clock, interval=0.1, timeout=0.2)

        with pytest.raises(WaitTimeout) as exc_info:
            await waiter.wait()

        assert waiter.state is WaitState.TIMED_OUT
        assert waiter.probes <= 2
        assert exc_info.value.last_state == "BUILD"
        assert exc_info.value.probes == waiter.probes
        assert exc_info.value.elapsed >= 0.2
        assert clock.delays == pytest.approx([0.1, 0.1])

    @pytest.mark.asyncio
    async def test_interval_longer_than_timeout_waits_full_timeout(self):
        clock = FakeClock()
        waiter = make_waiter(sequence_probe("BUILD"), clock, interval=10.0, timeout=5.0)

        with pytest.raises(WaitTimeout) as exc_info:
            await waiter.wait()

        assert waiter.probes == 1
        assert clock.delays == [5.0]
        assert exc_info.value.elapsed == 5.0

    @pytest.mark.asyncio
    async def test_backoff_step_clipped_to_deadline(self):
        clock = FakeClock()
        waiter = make_waiter(
            sequence_probe("BUILD"),
            clock,
            interval=1.0,
            timeout=600.0,
            backoff=BackoffPolicy(multiplier=2.0, max_interval=300.0),
        )

        with pytest.raises(WaitTimeout) as exc_info:
            await waiter.wait()

        assert exc_info.value.elapsed == 600.0
        assert waiter.probes == 10
        assert clock.delays[-1] == 89.0
        assert sum(clock.delays) == 600.0

    @pytest.mark.asyncio
    async def test_target_reached_within_clipped_delay(self):
        clock = FakeClock()
        probe = sequence_probe("BUILD", "ACTIVE")
        waiter = make_waiter(probe, clock, interval=0.5, timeout=0.8)

        entity = await waiter.wait()

        assert entity["status"] == "ACTIVE"
        assert clock.delays == [0.5]

    @pytest.mark.asyncio
    async def test_no_timeout_polls_until_target(self):
        clock = FakeClock()
        waiter = make_waiter(sequence_probe(*(["BUILD"] * 50), "ACTIVE"), clock, timeout=None)

        await waiter.wait()

        assert waiter.probes == 51

    @pytest.mark.asyncio
    async def test_probe_error_propagates(self):
        clock = FakeClock()

        async def probe():
            raise ServerError("HTTP 500", status_code=500)

        waiter = make_waiter(probe, clock)

        with pytest.raises(ServerError):
            await waiter.wait()
        assert waiter.state is WaitState.FAILED

    @pytest.mark.asyncio
    async def test_sync_probe_supported(self):
        clock = FakeClock()
        states = iter(["BUILD", "ACTIVE"])
        waiter = make_waiter(lambda: SimpleNamespace(status=next(states)), clock)

        entity = await waiter.wait()

        assert entity.status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_waiter_runs_once(self):
        clock = FakeClock()
        waiter = make_waiter(sequence_probe("ACTIVE"), clock)
        await waiter.wait()

        with pytest.raises(RuntimeError):
            await waiter.wait()


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_first_probe(self):
        clock = FakeClock()
        probe = sequence_probe("BUILD")
        cancel = asyncio.Event()
        cancel.set()
        waiter = make_waiter(probe, clock)

        with pytest.raises(Cancelled):
            await waiter.wait(cancel)

        assert waiter.state is WaitState.CANCELLED
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_cancel_observed_before_sleep(self):
        clock = FakeClock()
        cancel = asyncio.Event()

        async def probe():
            cancel.set()
            return {"status": "BUILD"}

        waiter = make_waiter(probe, clock)

        with pytest.raises(Cancelled):
            await waiter.wait(cancel)

        assert waiter.probes == 1
        assert clock.delays == []

    @pytest.mark.asyncio
    async def test_cancel_observed_after_sleep(self):
        clock = FakeClock()
        cancel = asyncio.Event()
        probe = sequence_probe("BUILD", "ACTIVE")

        async def cancelling_sleep(delay):
            await clock.sleep(delay)
            cancel.set()

        waiter = Waiter(
            probe,
            WaitSpec(target_states={"ACTIVE"}, interval=0.1),
            sleep=cancelling_sleep,
            clock=clock,
        )

        with pytest.raises(Cancelled):
            await waiter.wait(cancel)

        assert probe.calls == ["BUILD"]
        assert waiter.state is WaitState.CANCELLED

    @pytest.mark.asyncio
    async def test_default_sleep_wakes_on_cancel(self):
        cancel = asyncio.Event()
        waiter = Waiter(
            sequence_probe("BUILD"),
            WaitSpec(target_states={"ACTIVE"}, interval=30.0, timeout=None),
        )
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        with pytest.raises(Cancelled):
            await asyncio.wait_for(waiter.wait(cancel), timeout=5)

        assert waiter.probes == 1

    @pytest.mark.asyncio
    async def test_task_cancellation_marks_cancelled(self):
        waiter = Waiter(
            sequence_probe("BUILD"),
            WaitSpec(target_states={"ACTIVE"}, interval=30.0, timeout=None),
        )
        task = asyncio.create_task(waiter.wait())
        await asyncio.sleep(0.01)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert waiter.state is WaitState.CANCELLED


class TestBackoff:
    @pytest.mark.asyncio
    async def test_interval_grows_to_bound(self):
        clock = FakeClock()
        waiter = make_waiter(
            sequence_probe(*(["BUILD"] * 6), "ACTIVE"),
            clock,
            interval=0.1,
            timeout=None,
            backoff=BackoffPolicy(multiplier=2.0, max_interval=0.5),
        )

        await waiter.wait()

        assert clock.delays == pytest.approx([0.1, 0.2, 0.4, 0.5, 0.5, 0.5])

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            BackoffPolicy(multiplier=0.5)
        with pytest.raises(ValueError):
            BackoffPolicy(max_interval=0)


class TestWaitSpec:
    def test_states_must_not_overlap(self):
        with pytest.raises(ValueError, match="both target and failure"):
            WaitSpec(target_states={"ACTIVE"}, failure_states={"ACTIVE"})

    def test_target_required(self):
        with pytest.raises(ValueError):
            WaitSpec(target_states=set())

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            WaitSpec(target_states={"ACTIVE"}, timeout=0)


class TestStateOf:
    def test_mapping_status(self):
        assert default_state_of({"status": "ACTIVE"}) == "ACTIVE"

    def test_attribute_status(self):
        assert default_state_of(SimpleNamespace(status="BUILD")) == "BUILD"

    def test_plain_value(self):
        assert default_state_of("available") == "available"


class TestModuleFunctions:
    @pytest.mark.asyncio
    async def test_wait_for(self):
        clock = FakeClock()

        entity = await wait_for(
            sequence_probe("BUILD", "ACTIVE"),
            target_states={"ACTIVE"},
            failure_states={"ERROR"},
            interval=0.5,
            sleep=clock.sleep,
        )

        assert entity["status"] == "ACTIVE"
        assert clock.delays == [0.5]

    @pytest.mark.asyncio
    async def test_wait_for_custom_state_extractor(self):
        clock = FakeClock()

        async def probe():
            return {"volume": {"state": "available"}}

        entity = await wait_for(
            probe,
            target_states={"available"},
            state_of=lambda body: body["volume"]["state"],
            sleep=clock.sleep,
        )

        assert entity["volume"]["state"] == "available"

    @pytest.mark.asyncio
    async def test_wait_for_deletion_succeeds_on_not_found(self):
        clock = FakeClock()
        calls = []

        async def probe():
            calls.append(1)
            if len(calls) < 3:
                return {"status": "DELETING"}
            raise NotFound("gone")

        await wait_for_deletion(probe, interval=1.0, sleep=clock.sleep)

        assert len(calls) == 3
        assert clock.delays == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_wait_for_deletion_failure_state(self):
        clock = FakeClock()

        async def probe():
            return {"status": "ERROR_DELETING"}

        with pytest.raises(WaitFailedState):
            await wait_for_deletion(
                probe, failure_states={"ERROR_DELETING"}, sleep=clock.sleep
            )

    @pytest.mark.asyncio
    async def test_wait_for_deletion_other_errors_propagate(self):
        clock = FakeClock()

        async def probe():
            raise ServerError("HTTP 503", status_code=503)

        with pytest.raises(ServerError):
            await wait_for_deletion(probe, sleep=clock.sleep)
