from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from app.core.logging import get_logger
from app.core.request_id import with_run_id

logger = get_logger().bind(module="scheduler")

Work = Callable[[], Awaitable[Any]]
Interval = Union[timedelta, float, int]


def _interval_seconds(interval: Interval) -> float:
    if isinstance(interval, timedelta):
        seconds = interval.total_seconds()
    else:
        seconds = float(interval)
    if seconds <= 0:
        raise ValueError(f"interval must be positive, got {interval!r}")
    return seconds


@dataclass
class _Registration:
    name: str
    interval_s: float
    work: Work
    task: Optional[asyncio.Task[None]] = None
    runs: int = 0
    failures: int = 0
    skipped_ticks: int = 0


class TaskScheduler:
    """
    Named periodic tasks on the running event loop.

    Each registration runs its work once right away, then on a fixed-rate
    grid ``start + k * interval``. A run that overruns the grid skips the
    ticks it missed; runs of one task never overlap. Failures are logged and
    the schedule carries on.

    ``cancel`` stops future ticks only and lets a run in progress finish;
    ``cancel_all`` is the shutdown path and interrupts in-flight runs too.
    """

    def __init__(self) -> None:
        self._registrations: Dict[str, _Registration] = {}
        self._in_flight: Set[asyncio.Task[None]] = set()

    def schedule(self, name: str, interval: Interval, work: Work) -> None:
        interval_s = _interval_seconds(interval)
        if self.cancel(name):
            logger.info("scheduled_task_replaced", task=name)

        loop = asyncio.get_running_loop()
        registration = _Registration(name=name, interval_s=interval_s, work=work)
        registration.task = loop.create_task(self._run(registration), name=f"scheduled:{name}")
        self._registrations[name] = registration
        logger.info("scheduled_task_registered", task=name, interval_s=interval_s)

    def cancel(self, name: str) -> bool:
        registration = self._registrations.pop(name, None)
        if registration is None:
            return False
        if registration.task is not None:
            registration.task.cancel()
        logger.info("scheduled_task_cancelled", task=name, runs=registration.runs)
        return True

    async def cancel_all(self) -> None:
        registrations = list(self._registrations.values())
        self._registrations.clear()
        tasks = [r.task for r in registrations if r.task is not None]
        tasks.extend(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("scheduler_stopped", tasks=[r.name for r in registrations])

    def active_tasks(self) -> List[str]:
        return sorted(
            name
            for name, registration in self._registrations.items()
            if registration.task is not None and not registration.task.done()
        )

    async def _run(self, registration: _Registration) -> None:
        loop = asyncio.get_running_loop()
        interval_s = registration.interval_s
        started = loop.time()
        tick = 0

        while True:
            await self._run_detached(registration)

            now = loop.time()
            next_tick = tick + 1
            if now > started + next_tick * interval_s:
                elapsed_ticks = int((now - started) // interval_s)
                skipped = elapsed_ticks - tick
                registration.skipped_ticks += skipped
                logger.warning(
                    "scheduled_task_ticks_skipped",
                    task=registration.name,
                    skipped=skipped,
                    interval_s=interval_s,
                )
                next_tick = elapsed_ticks + 1
            tick = next_tick

            await asyncio.sleep(max(0.0, started + tick * interval_s - loop.time()))

    async def _run_detached(self, registration: _Registration) -> None:
        run = asyncio.get_running_loop().create_task(
            self._run_once(registration), name=f"scheduled-run:{registration.name}"
        )
        self._in_flight.add(run)
        run.add_done_callback(self._in_flight.discard)
        # cancelling the timer loop must not reach the run itself
        await asyncio.shield(run)

    async def _run_once(self, registration: _Registration) -> None:
        with with_run_id():
            try:
                await registration.work()
            except asyncio.CancelledError:
                raise
            except Exception:
                registration.failures += 1
                logger.exception(
                    "scheduled_task_failed",
                    task=registration.name,
                    failures=registration.failures,
                )
            finally:
                registration.runs += 1
