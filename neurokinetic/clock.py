from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


@dataclass(eq=False, slots=True)
class TimerHandle:
    due_s: float
    seq: int
    callback: Callable[[], None] = field(repr=False)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Cooperative one-shot timers and per-frame callbacks on an injected Clock.

    Nothing runs on its own: the owner calls pump() once per frame. Due timers
    run first (due time, then scheduling order), then the frame callbacks that
    were requested before the pump started. A frame callback that requests
    another frame is picked up by the next pump, never the current one.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._seq = itertools.count()
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._frames: list[TimerHandle] = []
        self._in_flight: list[TimerHandle] = []

    @property
    def clock(self) -> Clock:
        return self._clock

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        due = self._clock.now() + max(0.0, float(delay_s))
        handle = TimerHandle(due_s=due, seq=next(self._seq), callback=callback)
        heapq.heappush(self._timers, (handle.due_s, handle.seq, handle))
        return handle

    def request_frame(self, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(due_s=self._clock.now(), seq=next(self._seq), callback=callback)
        self._frames.append(handle)
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        for _, _, handle in self._timers:
            handle.cancel()
        for handle in self._frames + self._in_flight:
            handle.cancel()
        self._timers.clear()
        self._frames.clear()

    def pending(self) -> int:
        live = sum(1 for _, _, h in self._timers if not h.cancelled)
        return live + sum(1 for h in self._frames if not h.cancelled)

    def pump(self) -> int:
        """Run everything that is due. Returns the number of callbacks run."""

        ran = 0
        self._in_flight, self._frames = self._frames, []

        while self._timers:
            due, _, handle = self._timers[0]
            if due > self._clock.now():
                break
            heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            ran += 1

        for handle in self._in_flight:
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            ran += 1
        self._in_flight = []
        return ran
