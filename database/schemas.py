"""Pydantic 스키마 -- API 요청/응답 직렬화.

와이어 포맷은 camelCase (adUrl, boardId, fbAdId ...). 파이썬 쪽 필드는 snake_case 이고
alias_generator 로 변환한다. FastAPI 응답은 기본적으로 alias 로 직렬화된다.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _require_http_url(value: str) -> str:
    value = (value or "").strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


# ── Asset 요청 ──
class AdDataIn(CamelModel):
    """확장이 DOM 에서 직접 추출한 광고 데이터."""

    fb_ad_id: str = Field(min_length=1)
    brand_name: str | None = None
    headline: str | None = None
    ad_text: str | None = None
    description: str | None = None
    cta: str | None = None
    media_urls: list[str] = Field(default_factory=list)
    first_seen_date: datetime | None = None
    last_seen_date: datetime | None = None


class CreateAssetRequest(CamelModel):
    """POST /api/v1/assets/fb (세션 쿠키 인증)."""

    ad_url: str
    board_id: str | None = None
    page_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    ad_data: AdDataIn | None = None

    @field_validator("ad_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_http_url(v)


class ExtCreateAssetRequest(CamelModel):
    """POST /api/v1/ext/assets/fb (개인 액세스 토큰 인증)."""

    ad_url: str
    board_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    org_id: str | None = None

    @field_validator("ad_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _require_http_url(v)


# ── Asset 응답 ──
class MediaOut(CamelModel):
    url: str
    type: Literal["image", "video"]


class AssetOut(CamelModel):
    id: str
    fb_ad_id: str
    fb_page_id: str | None = None
    brand_name: str | None = None
    headline: str | None = None
    cta: str | None = None
    ad_text: str | None = None
    description: str | None = None
    ad_url: str | None = None
    media: list[MediaOut] = Field(default_factory=list)
    board_id: str | None = None
    runtime_days: int | None = None
    first_seen_date: datetime | None = None
    last_seen_date: datetime | None = None
    status: Literal["created", "existing"] = "created"
    message: str | None = None


# ── Board ──
class BoardCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class BoardOut(CamelModel):
    id: str
    name: str
    description: str | None = None
    is_default: bool = False
    asset_count: int = 0
    created_at: datetime


class BoardsResponse(CamelModel):
    boards: list[BoardOut]


# ── Health ──
class HealthOut(CamelModel):
    status: str
    authenticated: bool
    timestamp: datetime
