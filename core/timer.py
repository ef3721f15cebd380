# core/timer.py
import asyncio
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs a blocking `action` in a worker thread every `interval_seconds`.

    - interval <= 0 disables the task entirely (start() is a no-op).
    - stop() guarantees no further run starts; a run already in flight is
      awaited, never interrupted mid-call.
    """

    def __init__(
        self, interval_seconds: float, action: Callable[[], object], *, name: str = "periodic"
    ) -> None:
        self._interval = interval_seconds
        self._action = action
        self._name = name
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._interval <= 0:
            logger.info("timer.disabled name=%s interval=%s", self._name, self._interval)
            return
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name=f"timer-{self._name}")
        logger.info("timer.started name=%s interval=%ss", self._name, self._interval)

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                return
            try:
                await asyncio.to_thread(self._action)
            except Exception:
                logger.exception("timer.action.error name=%s", self._name)

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
            logger.info("timer.stopped name=%s", self._name)
