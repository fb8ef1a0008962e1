"""셀렉터 캐스케이드 — 순서대로 시도해서 첫 번째로 비어있지 않은 결과를 채택."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")

Extractor = Callable[[T], Optional[str]]
Predicate = Callable[[str], bool]


@dataclass
class SelectorChain(Generic[T]):
    """추출 함수 목록 + 후보 필터.

    각 추출기는 문자열 또는 None 을 반환한다. 공백 정리 후 필터를
    통과한 첫 결과를 돌려준다. 추출기 내부 예외는 해당 단계 실패로 간주.
    """

    extractors: list[Extractor] = field(default_factory=list)
    accept: Predicate | None = None

    def first(self, source: T) -> str | None:
        for extractor in self.extractors:
            try:
                value = extractor(source)
            except (AttributeError, KeyError, IndexError, TypeError, ValueError):
                continue
            if value is None:
                continue
            value = value.strip()
            if not value:
                continue
            if self.accept is not None and not self.accept(value):
                continue
            return value
        return None


def first_accepted(candidates: Iterable[str | None], accept: Predicate | None = None) -> str | None:
    """후보 목록 중 필터를 통과한 첫 문자열."""
    for candidate in candidates:
        if not candidate:
            continue
        candidate = candidate.strip()
        if candidate and (accept is None or accept(candidate)):
            return candidate
    return None


def length_between(min_len: int, max_len: int) -> Predicate:
    """min_len < len(value) < max_len 인 후보만 허용."""
    def _check(value: str) -> bool:
        return min_len < len(value) < max_len
    return _check


def all_of(*predicates: Predicate) -> Predicate:
    def _check(value: str) -> bool:
        return all(p(value) for p in predicates)
    return _check
