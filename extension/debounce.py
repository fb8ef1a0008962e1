"""재스캔 디바운서 — 변경 알림이 몰려와도 마지막 알림 후 delay 초에 한 번만 실행."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger


class Debouncer:
    """cancel-and-reschedule 타이머 + 동시에 하나만 실행.

    실행 중에 trigger() 가 들어오면 끝난 뒤 한 번 더 예약한다.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]], name: str = "rescan"):
        self.delay = delay
        self.callback = callback
        self.name = name
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._pending = False
        self.runs = 0

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = False

    def _fire(self) -> None:
        self._handle = None
        if self.running:
            self._pending = True
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            self.runs += 1
            await self.callback()
        except Exception as exc:
            logger.warning("[{}] callback failed: {}", self.name, exc)
        finally:
            if self._pending:
                self._pending = False
                self.trigger()

    async def wait_idle(self) -> None:
        """예약/실행 중인 작업이 모두 끝날 때까지 대기 (테스트/종료용)."""
        while self._handle is not None or self.running:
            if self.running:
                await asyncio.wait({self._task})
            else:
                await asyncio.sleep(self.delay / 4 or 0.01)
