"""
Named, cancellable timers for reconnect backoff and onboarding pacing.

The engine never sleeps directly. Everything time-based goes through a
Scheduler so production code runs on the asyncio loop while tests drive a
ManualScheduler's virtual clock forward deterministically.

Usage:
    scheduler = ManualScheduler()
    scheduler.call_later("reconnect", 3.0, connector.retry)
    await scheduler.advance(3.0)  # retry runs here
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Any]


class Scheduler(ABC):
    """Single-threaded timer registry keyed by name."""

    @abstractmethod
    def call_later(self, name: str, delay: float, callback: TimerCallback) -> None:
        """Run ``callback`` after ``delay`` seconds, replacing a pending timer of the same name."""

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Cancel a pending timer. Returns True if one was pending."""

    @abstractmethod
    def pending(self, name: str) -> bool:
        """Check whether a timer with this name is waiting to fire."""


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, name: str, delay: float, callback: TimerCallback) -> None:
        self.cancel(name)
        self._handles[name] = self._get_loop().call_later(delay, self._fire, name, callback)
        logger.debug("Timer '%s' scheduled in %.2fs", name, delay)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug("Timer '%s' cancelled", name)
        return True

    def pending(self, name: str) -> bool:
        return name in self._handles

    def _fire(self, name: str, callback: TimerCallback) -> None:
        self._handles.pop(name, None)
        result = callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)


@dataclass
class _VirtualTimer:
    due: float
    seq: int
    callback: TimerCallback


class ManualScheduler(Scheduler):
    """Virtual-time scheduler. Timers only fire inside ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: dict[str, _VirtualTimer] = {}
        self._seq = 0
        self.fired: list[str] = []

    def call_later(self, name: str, delay: float, callback: TimerCallback) -> None:
        self._seq += 1
        self._timers[name] = _VirtualTimer(due=self.now + delay, seq=self._seq, callback=callback)

    def cancel(self, name: str) -> bool:
        return self._timers.pop(name, None) is not None

    def pending(self, name: str) -> bool:
        return name in self._timers

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in due-time order."""
        target = self.now + seconds
        while True:
            due = [(t.due, t.seq, name) for name, t in self._timers.items() if t.due <= target]
            if not due:
                break
            _, _, name = min(due)
            timer = self._timers.pop(name)
            self.now = timer.due
            self.fired.append(name)
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self.now = target
