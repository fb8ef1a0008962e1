"""TTL 캐시 슬롯 — 릴레이가 세션 유효성/보드 목록을 보관하는 용도."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class TTLCache(Generic[T]):
    """값 하나 + 마지막 갱신 시각.

    is_stale()/invalidate() 는 부작용 없이 상태만 본다/바꾼다.
    fetched_at 이 None 이면 한 번도 채워지지 않은 상태.
    """

    ttl: float
    empty: Callable[[], T]
    value: Optional[T] = None
    fetched_at: Optional[float] = None

    def __post_init__(self) -> None:
        if self.value is None:
            self.value = self.empty()

    def set(self, value: T, now: float | None = None) -> None:
        self.value = value
        self.fetched_at = time.monotonic() if now is None else now

    def is_stale(self, now: float | None = None) -> bool:
        if self.fetched_at is None:
            return True
        now = time.monotonic() if now is None else now
        return now - self.fetched_at >= self.ttl

    def invalidate(self) -> None:
        """만료 처리. 값은 남겨둔다 (실패 시 stale 응답용)."""
        self.fetched_at = None

    def clear(self) -> None:
        self.value = self.empty()
        self.fetched_at = None
