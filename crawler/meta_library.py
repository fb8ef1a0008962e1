"""Meta 광고 라이브러리 공식 API(ads_archive) 조회 단계.

광고 ID 로 ads_archive 를 검색해서 정확히 같은 ID 의 광고를 찾는다.
검색 범위는 점점 넓힌다:
  1. search_terms=<id> + 단일 국가 (META_AD_COUNTRY)
  2. search_terms=<id> + 복수 국가 (META_BROAD_COUNTRIES)
  3. search_page_ids=<알려진 페이지 ID> (META_KNOWN_PAGE_IDS, 없으면 생략)

토큰이 없거나 ID 가 없으면 단계 자체를 건너뛴다.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from typing import NamedTuple

import httpx
from loguru import logger

from crawler.ad_url import AdReference
from crawler.config import scraper_settings
from crawler.errors import UpstreamUnavailable
from processor.normalizer import NormalizedAd

# ── 설정 ──

# Graph API error.code
TOKEN_ERROR_CODES = {10, 102, 190, 200}  # 10/200: ads_archive 권한 없음
RATE_LIMIT_ERROR_CODES = {4, 17, 32, 613}
TRANSIENT_ERROR_CODES = {1, 2}

ADS_ARCHIVE_FIELDS = (
    "id", "page_id", "page_name",
    "ad_creation_time", "ad_delivery_start_time", "ad_delivery_stop_time",
    "ad_creative_bodies", "ad_creative_link_titles",
    "ad_creative_link_captions", "ad_creative_link_descriptions",
    "ad_snapshot_url", "publisher_platforms", "languages",
)

DEFAULT_BROAD_COUNTRIES = ("US", "GB", "CA", "AU", "DE", "FR")


def _env_list(name: str, default: tuple[str, ...] = ()) -> list[str]:
    raw = os.getenv(name, "")
    items = [part.strip() for part in raw.split(",") if part.strip()]
    return items or list(default)


# ── 응답 파싱 ──

def first_creative(values, keep_newlines: bool = False) -> str | None:
    """ad_creative_* 필드(문자열 배열)에서 첫 번째 비어 있지 않은 값.

    제목/설명은 공백을 한 칸으로 접고, 본문(keep_newlines)은 줄바꿈을 살린다.
    """
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, list):
        return None
    for value in values:
        if not isinstance(value, str):
            continue
        if keep_newlines:
            cleaned = value.strip()
        else:
            cleaned = " ".join(value.split())
        if cleaned:
            return cleaned
    return None


def parse_meta_time(value: str | None) -> datetime | None:
    """Graph API 시각 문자열 → UTC datetime. '2024-01-01T08:00:00+0000' 또는 '2024-01-01'."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d"):
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def map_archive_item(item: dict, source_url: str) -> NormalizedAd:
    """ads_archive 항목 → NormalizedAd. 미디어는 비워두고 snapshot URL 로 대체."""
    first_seen = parse_meta_time(item.get("ad_delivery_start_time")) or parse_meta_time(
        item.get("ad_creation_time")
    )
    last_seen = parse_meta_time(item.get("ad_delivery_stop_time"))
    if last_seen is None and first_seen is not None:
        # 종료 시각 없음 = 아직 게재 중
        last_seen = datetime.now(timezone.utc)

    return NormalizedAd(
        ad_id=str(item.get("id")),
        source_url=source_url,
        page_id=str(item["page_id"]) if item.get("page_id") else None,
        brand_name=item.get("page_name"),
        headline=first_creative(item.get("ad_creative_link_titles")),
        ad_text=first_creative(item.get("ad_creative_bodies"), keep_newlines=True),
        description=first_creative(item.get("ad_creative_link_descriptions"))
        or first_creative(item.get("ad_creative_link_captions")),
        first_seen_date=first_seen,
        last_seen_date=last_seen,
        snapshot_url=item.get("ad_snapshot_url"),
        platforms=[str(p) for p in item.get("publisher_platforms") or []],
        languages=[str(lang) for lang in item.get("languages") or []],
        resolved_by="meta_api",
    )


# ── API 에러 분류 ──

class MetaApiFailure(NamedTuple):
    """ads_archive 실패 응답 요약.

    kind:
      - "token":      토큰 만료/무효 또는 ads_archive 권한 없음 (재시도 무의미)
      - "rate_limit": 앱/사용자 호출 한도 (백오프 후 재시도)
      - "transient":  Graph API 일시 장애 (재시도)
      - "rejected":   잘못된 파라미터 등 나머지 (재시도 안 함)
    """

    kind: str
    retryable: bool
    message: str

    @property
    def alert(self) -> bool:
        """운영자가 조치해야 하는 실패 (토큰 교체, 한도 조정)."""
        return self.kind in ("token", "rate_limit")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "MetaApiFailure":
        error: dict = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]

        if body is None:
            message = response.text.strip()[:240]
        else:
            message = str(error.get("message") or "").strip()[:240]
        code = error.get("code") if isinstance(error.get("code"), int) else None
        status = response.status_code

        if status in (401, 403) or code in TOKEN_ERROR_CODES:
            return cls("token", False, message or "access token rejected or missing ads_archive permission")
        if status == 429 or code in RATE_LIMIT_ERROR_CODES:
            return cls("rate_limit", True, message or "ads_archive rate limit reached")
        if status >= 500 or status == 408 or code in TRANSIENT_ERROR_CODES:
            return cls("transient", True, message or "Graph API temporarily unavailable")
        return cls("rejected", False, message or f"unexpected ads_archive response (http {status})")


# ── 조회 단계 ──

class MetaAdsArchiveStage:
    """공식 API 조회 단계. try_resolve() 는 정확히 일치하는 광고가 없으면 None."""

    name = "api"

    def __init__(
        self,
        access_token: str | None = None,
        api_version: str | None = None,
        country: str | None = None,
        broad_countries: list[str] | None = None,
        known_page_ids: list[str] | None = None,
        max_retries: int | None = None,
        retry_backoff_ms: int | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.access_token = (
            access_token if access_token is not None
            else os.getenv("META_ACCESS_TOKEN", "")
        ).strip()
        self.api_version = (api_version or os.getenv("META_API_VERSION", "v22.0")).strip()
        self.country = (country or os.getenv("META_AD_COUNTRY", "US")).strip().upper() or "US"
        self.broad_countries = broad_countries or _env_list(
            "META_BROAD_COUNTRIES", DEFAULT_BROAD_COUNTRIES,
        )
        self.known_page_ids = (
            known_page_ids if known_page_ids is not None
            else _env_list("META_KNOWN_PAGE_IDS")
        )
        self.max_retries = max(0, max_retries if max_retries is not None else int(
            os.getenv("META_MAX_RETRIES", str(scraper_settings.max_retries))
        ))
        self.retry_backoff_ms = max(0, retry_backoff_ms if retry_backoff_ms is not None else int(
            os.getenv("META_RETRY_BACKOFF_MS", str(scraper_settings.retry_backoff_ms))
        ))
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.access_token)

    @property
    def endpoint(self) -> str:
        return f"https://graph.facebook.com/{self.api_version}/ads_archive"

    def strategies(self, ad_id: str) -> list[tuple[str, dict]]:
        """(전략 이름, 쿼리 파라미터) 목록. 좁은 범위부터."""
        base = {
            "ad_type": "ALL",
            "ad_active_status": "ALL",
            "fields": ",".join(ADS_ARCHIVE_FIELDS),
            "limit": 25,
            "access_token": self.access_token,
        }
        plans = [
            ("single_country", {
                **base,
                "search_terms": ad_id,
                "ad_reached_countries": json.dumps([self.country]),
            }),
            ("broad_countries", {
                **base,
                "search_terms": ad_id,
                "ad_reached_countries": json.dumps(self.broad_countries),
            }),
        ]
        if self.known_page_ids:
            plans.append(("known_pages", {
                **base,
                "search_page_ids": ",".join(self.known_page_ids),
                "ad_reached_countries": json.dumps(self.broad_countries),
            }))
        return plans

    async def try_resolve(self, ref: AdReference) -> NormalizedAd | None:
        if not self.enabled:
            logger.debug("[{}] META_ACCESS_TOKEN 미설정, 건너뜀", self.name)
            return None
        if not ref.ad_id:
            logger.debug("[{}] 광고 ID 없음, 건너뜀", self.name)
            return None

        if self._client is not None:
            return await self._search(self._client, ref)

        timeout = httpx.Timeout(
            scraper_settings.request_timeout_sec,
            connect=scraper_settings.connect_timeout_sec,
        )
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await self._search(client, ref)

    async def _search(self, client: httpx.AsyncClient, ref: AdReference) -> NormalizedAd | None:
        for strategy, params in self.strategies(ref.ad_id):
            payload = await self._request_ads_archive(client, params, strategy)
            data = payload.get("data") or []
            for item in data:
                if isinstance(item, dict) and str(item.get("id")) == ref.ad_id:
                    logger.info(
                        "[{}] exact match ad_id={} strategy={} page='{}'",
                        self.name, ref.ad_id, strategy, item.get("page_name"),
                    )
                    return map_archive_item(item, ref.url)
            logger.debug(
                "[{}] no exact match ad_id={} strategy={} ({} results)",
                self.name, ref.ad_id, strategy, len(data),
            )
        logger.info("[{}] ad_id={} not found via ads_archive", self.name, ref.ad_id)
        return None

    async def _request_ads_archive(
        self, client: httpx.AsyncClient, params: dict, strategy: str,
    ) -> dict:
        max_attempts = self.max_retries + 1
        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.get(self.endpoint, params=params)
            except httpx.RequestError as exc:
                if attempt >= max_attempts:
                    raise UpstreamUnavailable(f"Meta API request failed: {exc}") from exc
                wait_ms = self.retry_backoff_ms * (2 ** (attempt - 1))
                logger.warning(
                    "[{}] request error strategy={} attempt {}/{}; retry in {}ms: {}",
                    self.name, strategy, attempt, max_attempts, wait_ms, exc,
                )
                await asyncio.sleep(wait_ms / 1000)
                continue

            payload: dict | None = None
            try:
                parsed = response.json()
                if isinstance(parsed, dict):
                    payload = parsed
            except ValueError:
                payload = None

            if response.status_code == 200 and payload is not None:
                return payload

            failure = MetaApiFailure.from_response(response)
            log = logger.error if failure.alert else logger.warning
            log(
                "[{}] ads_archive {} failure strategy={} status={} attempt {}/{}: {}",
                self.name, failure.kind, strategy, response.status_code,
                attempt, max_attempts, failure.message,
            )

            if failure.retryable and attempt < max_attempts:
                wait_ms = self.retry_backoff_ms * (2 ** (attempt - 1))
                await asyncio.sleep(wait_ms / 1000)
                continue

            raise UpstreamUnavailable(
                f"Meta API {failure.kind} error {response.status_code}: {failure.message}"
            )

        raise UpstreamUnavailable("Meta API request exhausted retries")
