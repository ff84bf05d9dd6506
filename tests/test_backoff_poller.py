"""
tests/test_backoff_poller.py

Pollers driven by a manual timer so every tick is explicit.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from app.polling.backoff_poller import BackoffPoller, PollerRegistry, backoff_delay


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if timer.started and not (timer.cancelled or timer.fired)]

    def fire_next(self) -> None:
        timer = self.pending[0]
        timer.fired = True
        timer.callback()


def _job(status: str, **extra) -> dict:
    return {"status": status, **extra}


def _is_terminal(payload: dict) -> bool:
    return payload["status"] in {"success", "failed"}


def test_backoff_delay_clamps_to_last_step() -> None:
    schedule = (3.0, 5.0, 8.0)

    assert [backoff_delay(attempt, schedule) for attempt in range(6)] == [3.0, 5.0, 8.0, 8.0, 8.0, 8.0]
    with pytest.raises(ValueError):
        backoff_delay(0, ())


def test_failed_job_stops_polling_and_completes_once() -> None:
    clock = ManualClock()
    responses = iter([_job("queued"), _job("running"), _job("failed", error_message="network timeout")])
    completed: list[dict] = []
    poller = BackoffPoller(
        "job-1",
        fetch_status=lambda _: next(responses),
        is_terminal=_is_terminal,
        on_complete=completed.append,
        timer_factory=clock,
    )

    poller.start()
    for _ in range(3):
        clock.fire_next()

    assert completed == [_job("failed", error_message="network timeout")]
    assert poller.completed
    assert not poller.active
    assert poller.polls == 3
    assert clock.pending == []
    assert poller.delays == [3.0, 5.0, 8.0]

    # A stray late tick must not poll or complete again.
    poller.poll()
    assert poller.polls == 3
    assert len(completed) == 1


def test_delays_never_decrease_and_attempts_are_capped() -> None:
    clock = ManualClock()
    poller = BackoffPoller(
        "job-2",
        fetch_status=lambda _: _job("running"),
        is_terminal=_is_terminal,
        on_complete=lambda _: None,
        max_attempts=4,
        timer_factory=clock,
    )

    poller.start()
    for _ in range(8):
        clock.fire_next()

    delays = poller.delays
    assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
    assert max(delays) == 8.0
    assert poller.attempt == 4
    assert poller.active


def test_fetch_error_counts_as_attempt_and_retries() -> None:
    clock = ManualClock()
    calls = {"count": 0}

    def flaky(_: str) -> dict:
        calls["count"] += 1
        if calls["count"] == 1:
            raise ConnectionError("connection refused")
        return _job("success")

    completed: list[dict] = []
    poller = BackoffPoller(
        "job-3",
        fetch_status=flaky,
        is_terminal=_is_terminal,
        on_complete=completed.append,
        timer_factory=clock,
    )

    poller.start()
    clock.fire_next()
    assert poller.attempt == 1
    assert poller.active

    clock.fire_next()
    assert completed == [_job("success")]


def test_malformed_status_payload_retries() -> None:
    clock = ManualClock()
    payloads = iter([{"unexpected": True}, _job("failed")])
    completed: list[dict] = []
    poller = BackoffPoller(
        "job-4",
        fetch_status=lambda _: next(payloads),
        is_terminal=_is_terminal,
        on_complete=completed.append,
        timer_factory=clock,
    )

    poller.start()
    clock.fire_next()
    assert completed == []
    assert poller.attempt == 1
    assert len(clock.pending) == 1

    clock.fire_next()
    assert completed == [_job("failed")]
    assert not poller.active


def test_cancel_stops_pending_timer() -> None:
    clock = ManualClock()
    completed: list[dict] = []
    poller = BackoffPoller(
        "job-4",
        fetch_status=lambda _: _job("success"),
        is_terminal=_is_terminal,
        on_complete=completed.append,
        timer_factory=clock,
    )

    poller.start()
    poller.cancel()

    assert clock.timers[0].cancelled
    assert not poller.active
    poller.poll()
    assert completed == []


def test_invalid_schedule() -> None:
    with pytest.raises(ValueError):
        BackoffPoller("x", fetch_status=str, is_terminal=bool, on_complete=print, schedule=(3.0, 0.0))


class TestPollerRegistry:
    def test_watch_replaces_existing_poller(self) -> None:
        clock = ManualClock()
        registry = PollerRegistry(fetch_status=lambda _: _job("running"), is_terminal=_is_terminal, timer_factory=clock)

        first = registry.watch("job-1", lambda _: None)
        second = registry.watch("job-1", lambda _: None)

        assert len(registry) == 1
        assert registry.get("job-1") is second
        assert not first.active
        assert clock.timers[0].cancelled

    def test_completed_poller_leaves_registry(self) -> None:
        clock = ManualClock()
        completed: list[dict] = []
        registry = PollerRegistry(fetch_status=lambda _: _job("success"), is_terminal=_is_terminal, timer_factory=clock)

        registry.watch("job-1", completed.append)
        clock.fire_next()

        assert completed == [_job("success")]
        assert "job-1" not in registry

    def test_context_exit_cancels_everything(self) -> None:
        clock = ManualClock()
        with PollerRegistry(fetch_status=lambda _: _job("running"), is_terminal=_is_terminal, timer_factory=clock) as registry:
            registry.watch("job-1", lambda _: None)
            registry.watch("job-2", lambda _: None)
            assert len(registry) == 2

        assert len(registry) == 0
        assert all(timer.cancelled for timer in clock.timers)

    def test_cancel_single(self) -> None:
        clock = ManualClock()
        registry = PollerRegistry(fetch_status=lambda _: _job("running"), is_terminal=_is_terminal, timer_factory=clock)
        registry.watch("job-1", lambda _: None)

        assert registry.cancel("job-1") is True
        assert registry.cancel("job-1") is False
        assert registry.cancel_all() == 0
