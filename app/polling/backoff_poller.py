"""
app/polling/backoff_poller.py

Status polling with a stepped backoff schedule.

Each in-flight job or version gets its own ``BackoffPoller`` holding a
single pending timer. Pollers are owned by a ``PollerRegistry`` that the
watching caller creates and tears down; there is no module-level timer
state.

Delay for attempt ``n`` is ``schedule[min(n, len(schedule) - 1)]``. The
attempt counter stops growing at ``max_attempts``, but polling continues
at the clamped delay until a terminal status is observed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Sequence
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE: tuple[float, ...] = (3.0, 5.0, 8.0)
DEFAULT_MAX_ATTEMPTS = 10


class TimerHandle(Protocol):
    def start(self) -> None:
        ...

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]
StatusFetcher = Callable[[Any], Any]
TerminalPredicate = Callable[[Any], bool]
CompletionCallback = Callable[[Any], None]


def backoff_delay(attempt: int, schedule: Sequence[float] = DEFAULT_SCHEDULE) -> float:
    if not schedule:
        raise ValueError("Backoff schedule must not be empty.")
    return float(schedule[min(max(0, attempt), len(schedule) - 1)])


def thread_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class BackoffPoller:
    """
    Polls ``fetch_status(target_id)`` until ``is_terminal`` accepts the
    result, then calls ``on_complete`` with it exactly once.

    A fetch that raises is logged and counts as an attempt; polling
    carries on at the next delay.
    """

    def __init__(
        self,
        target_id: Hashable,
        *,
        fetch_status: StatusFetcher,
        is_terminal: TerminalPredicate,
        on_complete: CompletionCallback,
        schedule: Sequence[float] = DEFAULT_SCHEDULE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        if not schedule or any(delay <= 0 for delay in schedule):
            raise ValueError("Backoff schedule must contain positive delays.")
        self.target_id = target_id
        self._fetch_status = fetch_status
        self._is_terminal = is_terminal
        self._on_complete = on_complete
        self._schedule = tuple(schedule)
        self._max_attempts = max(1, max_attempts)
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._timer: TimerHandle | None = None
        self._attempt = 0
        self._polls = 0
        self._completed = False
        self._cancelled = False
        self._delays: list[float] = []

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def polls(self) -> int:
        return self._polls

    @property
    def delays(self) -> list[float]:
        return list(self._delays)

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def active(self) -> bool:
        return not (self._completed or self._cancelled)

    def start(self) -> None:
        with self._lock:
            self._schedule_next()

    def cancel(self) -> None:
        """
        Stop polling. Has no effect on the watched job or version.
        """

        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def poll(self) -> None:
        with self._lock:
            if not self.active:
                return
            self._timer = None
            self._polls += 1

        try:
            status = self._fetch_status(self.target_id)
            terminal = self._is_terminal(status)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Status poll failed target=%s attempt=%s error=%s", self.target_id, self._attempt, exc)
            self._retry()
            return

        if not terminal:
            self._retry()
            return

        with self._lock:
            if self._completed or self._cancelled:
                return
            self._completed = True
        logger.info("Status poll reached terminal target=%s polls=%s", self.target_id, self._polls)
        self._on_complete(status)

    def _retry(self) -> None:
        with self._lock:
            if self._attempt < self._max_attempts:
                self._attempt += 1
            self._schedule_next()

    def _schedule_next(self) -> None:
        if not self.active or self._timer is not None:
            return
        delay = backoff_delay(self._attempt, self._schedule)
        self._delays.append(delay)
        self._timer = self._timer_factory(delay, self.poll)
        self._timer.start()


class PollerRegistry:
    """
    Caller-scoped set of pollers keyed by job or version id.

    Use as a context manager, or call ``cancel_all`` on teardown, so no
    timer outlives its watcher.
    """

    def __init__(
        self,
        *,
        fetch_status: StatusFetcher,
        is_terminal: TerminalPredicate,
        schedule: Sequence[float] = DEFAULT_SCHEDULE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._fetch_status = fetch_status
        self._is_terminal = is_terminal
        self._schedule = tuple(schedule)
        self._max_attempts = max_attempts
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pollers: dict[Hashable, BackoffPoller] = {}

    def __enter__(self) -> "PollerRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel_all()

    def __contains__(self, target_id: Hashable) -> bool:
        with self._lock:
            return target_id in self._pollers

    def __len__(self) -> int:
        with self._lock:
            return len(self._pollers)

    def watch(self, target_id: Hashable, on_complete: CompletionCallback) -> BackoffPoller:
        """
        Start polling ``target_id``, replacing any poller already watching it.
        """

        def _complete(status: Any) -> None:
            with self._lock:
                if self._pollers.get(target_id) is poller:
                    del self._pollers[target_id]
            on_complete(status)

        poller = BackoffPoller(
            target_id,
            fetch_status=self._fetch_status,
            is_terminal=self._is_terminal,
            on_complete=_complete,
            schedule=self._schedule,
            max_attempts=self._max_attempts,
            timer_factory=self._timer_factory,
        )
        with self._lock:
            previous = self._pollers.get(target_id)
            self._pollers[target_id] = poller
        if previous is not None:
            previous.cancel()
        poller.start()
        return poller

    def get(self, target_id: Hashable) -> BackoffPoller | None:
        with self._lock:
            return self._pollers.get(target_id)

    def cancel(self, target_id: Hashable) -> bool:
        with self._lock:
            poller = self._pollers.pop(target_id, None)
        if poller is None:
            return False
        poller.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            pollers = list(self._pollers.values())
            self._pollers.clear()
        for poller in pollers:
            poller.cancel()
        if pollers:
            logger.info("Cancelled pollers count=%s", len(pollers))
        return len(pollers)
