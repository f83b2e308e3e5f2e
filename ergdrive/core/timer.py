"""Cancelable periodic task used as the workout clock."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional


class PeriodicTimer:
    def __init__(self, interval_sec: float, callback: Callable[[], object]) -> None:
        if interval_sec <= 0:
            raise ValueError("Timer interval must be > 0")
        self._interval_sec = interval_sec
        self._callback = callback
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the first pulse one interval from now. Needs a running loop."""
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        # Safe to call repeatedly and from inside the callback itself.
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            self._callback()
