from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Countdown:
    """
    Tâche asyncio qui appelle on_tick toutes les `interval` secondes tant que
    on_tick renvoie True. Une exception dans on_tick est loguée, jamais propagée.
    """

    def __init__(
        self,
        on_tick: Callable[[], Awaitable[bool]],
        *,
        interval: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._on_tick = on_tick
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def cancel(self) -> None:
        # appelé depuis le tick lui-même (finish forcé) : la boucle s'arrête seule
        if self._task is None or self._task is asyncio.current_task():
            return
        if not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            try:
                keep_going = await self._on_tick()
            except Exception:
                logger.exception("countdown tick failed")
                keep_going = False
            if not keep_going:
                return
