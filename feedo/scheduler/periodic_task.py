"""
Periodic Task Runner
====================

Runs an async callable over and over with a fixed pause between the end of
one cycle and the start of the next:

- the first cycle starts as soon as the task is started
- the next cycle is scheduled ``interval_seconds`` after the previous one
  finished, so a slow cycle delays the following one and cycles never overlap
- an exception in a cycle is logged and counted; the loop carries on
- ``destroy()`` cancels the pending wait so no further cycle starts; a cycle
  already running is left to finish
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..utils.logging import get_logger_for_component, PerformanceLogger


class TaskState(str, Enum):
    """Lifecycle states of a periodic task."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    SCHEDULED = "scheduled"
    STOPPED = "stopped"


class PeriodicTask:
    """Completion-relative fixed-interval loop around one async callable."""

    def __init__(
        self,
        name: str,
        work: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ):
        """Initialize periodic task.

        Args:
            name: Task name used in logs
            work: Coroutine function run once per cycle
            interval_seconds: Pause between the end of a cycle and the next start
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.name = name
        self.work = work
        self.interval_seconds = interval_seconds
        self.logger = get_logger_for_component(f"task.{name}")

        self.state = TaskState.IDLE
        self.cycles_run = 0
        self.cycles_failed = 0
        self.last_error: Optional[BaseException] = None
        self.last_result: Any = None
        self.last_started_at: Optional[float] = None
        self.last_finished_at: Optional[float] = None

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the loop; the first cycle begins immediately.

        Must be called from a running event loop. Starting a task that is
        already running returns the existing loop.
        """
        if self.is_running:
            return self._task

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name=f"periodic-{self.name}")
        self.logger.info(f"Started, interval {self.interval_seconds}s")
        return self._task

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await self.run_once()

                if self._stop_event.is_set():
                    break

                self.state = TaskState.SCHEDULED
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    continue
        finally:
            self.state = TaskState.STOPPED
            self.logger.info(f"Stopped after {self.cycles_run} cycle(s)")

    async def run_once(self) -> Any:
        """Run a single cycle, catching and recording any failure.

        Returns:
            The callable's result, or None if it raised
        """
        self.state = TaskState.RUNNING
        self.last_started_at = time.time()
        self.cycles_run += 1
        result = None

        try:
            with PerformanceLogger(self.logger, f"{self.name} cycle", cycle=self.cycles_run):
                result = await self.work()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.state = TaskState.FAILURE
            self.cycles_failed += 1
            self.last_error = e
            self.logger.error(f"Cycle {self.cycles_run} failed: {e}", exc_info=True)
        else:
            self.state = TaskState.SUCCESS
            self.last_result = result
        finally:
            self.last_finished_at = time.time()

        return result

    def destroy(self) -> None:
        """Cancel the pending wait; no new cycle starts after this call."""
        self._stop_event.set()
        if not self.is_running:
            self.state = TaskState.STOPPED

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Destroy and wait for an in-flight cycle to finish.

        Args:
            timeout: Seconds to wait before cancelling the cycle outright
        """
        self.destroy()
        if self._task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Cycle did not finish within {timeout}s, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
