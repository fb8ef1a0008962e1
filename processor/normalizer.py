"""광고 데이터 정규화 — 추출 원본 → 저장 가능한 NormalizedAd 로 변환."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator

_ZERO_WIDTH = ("\u200b", "\u200e", "\u200f", "\u202a", "\u202b", "\u202c", "\ufeff")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_DAY_SECONDS = 86_400

MAX_HEADLINE_LENGTH = 200


def clean_text(value: str | None) -> str | None:
    """공백 정리 + 제로폭 문자 제거. 빈 문자열이면 None."""
    if not value:
        return None
    for ch in _ZERO_WIDTH:
        value = value.replace(ch, "")
    cleaned = " ".join(value.split()).strip()
    return cleaned or None


def clean_multiline(value: str | None) -> str | None:
    """본문용 정리 — 줄바꿈은 유지, 3줄 이상 연속 개행은 2줄로."""
    if not value:
        return None
    for ch in _ZERO_WIDTH:
        value = value.replace(ch, "")
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    lines = [" ".join(line.split()) for line in value.split("\n")]
    text = _EXCESS_NEWLINES.sub("\n\n", "\n".join(lines)).strip()
    return text or None


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def calculate_runtime_days(
    first_seen: datetime | None, last_seen: datetime | None,
) -> int | None:
    """게재 일수 = ceil(|last - first| / 1일). 둘 중 하나라도 없으면 None."""
    if not first_seen or not last_seen:
        return None
    diff = abs((_as_naive_utc(last_seen) - _as_naive_utc(first_seen)).total_seconds())
    return math.ceil(diff / _DAY_SECONDS)


class MediaItem(BaseModel):
    """발견된 미디어 한 건. source 는 발견 경로 태그 (img, video_poster, og:image ...)."""

    url: str
    type: Literal["image", "video"] = "image"
    source: str = "unknown"
    alt: str | None = None


class NormalizedAd(BaseModel):
    """정규화된 광고 레코드 — 스크레이퍼/디텍터 공통 출력."""

    ad_id: str
    source_url: str
    page_id: str | None = None
    brand_name: str | None = None
    headline: str | None = None
    ad_text: str | None = None
    cta: str | None = None
    description: str | None = None
    media_items: list[MediaItem] = Field(default_factory=list)
    first_seen_date: datetime | None = None
    last_seen_date: datetime | None = None
    snapshot_url: str | None = None
    platforms: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    resolved_by: str = "unknown"

    @field_validator("ad_id", mode="before")
    @classmethod
    def require_ad_id(cls, v) -> str:
        cleaned = str(v or "").strip()
        if not cleaned:
            raise ValueError("ad_id must not be empty")
        return cleaned

    @field_validator("brand_name", "cta", "description", "page_id", mode="before")
    @classmethod
    def clean_single_line(cls, v: str | None) -> str | None:
        return clean_text(v)

    @field_validator("headline", mode="before")
    @classmethod
    def clean_headline(cls, v: str | None) -> str | None:
        cleaned = clean_text(v)
        if cleaned and len(cleaned) > MAX_HEADLINE_LENGTH:
            cleaned = cleaned[:MAX_HEADLINE_LENGTH].rstrip()
        return cleaned

    @field_validator("ad_text", mode="before")
    @classmethod
    def clean_body(cls, v: str | None) -> str | None:
        return clean_multiline(v)

    @computed_field
    @property
    def runtime_days(self) -> int | None:
        return calculate_runtime_days(self.first_seen_date, self.last_seen_date)

    @property
    def media_urls(self) -> list[str]:
        return [m.url for m in self.media_items]

    @property
    def has_content(self) -> bool:
        return bool(self.brand_name or self.headline or self.ad_text or self.media_items)

    def to_payload(self) -> dict:
        """제출 엔드포인트(adData) 형태의 camelCase dict."""
        return {
            "fbAdId": self.ad_id,
            "fbPageId": self.page_id,
            "brandName": self.brand_name,
            "headline": self.headline,
            "adText": self.ad_text,
            "description": self.description,
            "cta": self.cta,
            "mediaUrls": self.media_urls,
            "firstSeenDate": self.first_seen_date.isoformat() if self.first_seen_date else None,
            "lastSeenDate": self.last_seen_date.isoformat() if self.last_seen_date else None,
            "runtimeDays": self.runtime_days,
            "adUrl": self.source_url,
        }
