"""Facebook 광고 URL 검증 + 광고 ID 추출."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

from crawler.errors import InvalidAdUrl

FACEBOOK_HOSTS = {
    "facebook.com",
    "www.facebook.com",
    "m.facebook.com",
    "web.facebook.com",
    "business.facebook.com",
}

AD_LIBRARY_PATH = "/ads/library"

# 검색 컨텍스트로 취급하는 쿼리 파라미터 (폴백 브랜드 추정용)
SEARCH_CONTEXT_PARAMS = ("q", "search_terms", "query")

_NUMERIC_SEGMENT = re.compile(r"/(\d+)(?:/|$)")
_AD_ID_PATTERNS = (
    re.compile(r"[?&]id=(\d+)"),
    re.compile(r"[?&]ad_id=(\d+)"),
    re.compile(r"/ads/library/(\d+)"),
    re.compile(r"/(\d{5,})(?:[/?#]|$)"),
)


@dataclass(frozen=True)
class AdReference:
    """검증된 광고 URL."""

    url: str
    ad_id: str | None
    search_context: dict[str, str] = field(default_factory=dict)
    is_ad_library: bool = False

    @property
    def search_query(self) -> str | None:
        for key in SEARCH_CONTEXT_PARAMS:
            value = self.search_context.get(key)
            if value:
                return value
        return None


def is_facebook_host(url: str) -> bool:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    return host in FACEBOOK_HOSTS


def extract_ad_id(url: str) -> str | None:
    """id 쿼리 파라미터 우선, 실패 시 URL 전체에 정규식 패턴 적용."""
    try:
        query = parse_qs(urlparse(url).query)
    except ValueError:
        query = {}
    for value in query.get("id", []):
        value = value.strip()
        if value.isdigit():
            return value

    for pattern in _AD_ID_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def synthetic_ad_id(url: str) -> str:
    """ID를 찾지 못한 URL용 안정적인 합성 ID."""
    digest = hashlib.sha256(url.strip().encode("utf-8")).hexdigest()[:16]
    return f"url_{digest}"


def validate_ad_url(url: str) -> AdReference:
    """Facebook 도메인 + (광고 라이브러리 id 파라미터 | 숫자 경로 세그먼트) 만 허용.

    Raises:
        InvalidAdUrl: 형식이 맞지 않을 때. 네트워크 호출 전에 발생한다.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidAdUrl(str(url), "empty URL")

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise InvalidAdUrl(url, "malformed URL") from exc

    if parsed.scheme not in ("http", "https"):
        raise InvalidAdUrl(url, "unsupported scheme")

    host = (parsed.hostname or "").lower()
    if host not in FACEBOOK_HOSTS:
        raise InvalidAdUrl(url, "not a Facebook host")

    query = parse_qs(parsed.query)
    search_context = {
        key: query[key][0].strip()
        for key in SEARCH_CONTEXT_PARAMS
        if query.get(key) and query[key][0].strip()
    }

    path = parsed.path.rstrip("/") or "/"
    is_library = path == AD_LIBRARY_PATH or path.startswith(AD_LIBRARY_PATH + "/")

    if is_library and "id" in query:
        return AdReference(
            url=url,
            ad_id=extract_ad_id(url),
            search_context=search_context,
            is_ad_library=True,
        )

    m = _NUMERIC_SEGMENT.search(parsed.path)
    if m:
        return AdReference(
            url=url,
            ad_id=extract_ad_id(url) or m.group(1),
            search_context=search_context,
            is_ad_library=is_library,
        )

    raise InvalidAdUrl(url, "no ad id in URL")
