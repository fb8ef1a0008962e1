"""광고 페이지 HTML 수집 + 휴리스틱 파싱 단계.

데스크톱 헤더로 한 번, 실패하면 모바일 헤더로 한 번 더 요청한다.
로그인 월/에러 페이지/너무 짧은 HTML 은 차단으로 간주하고 다음 단계로 넘긴다.
파싱은 BeautifulSoup + 셀렉터 캐스케이드(SelectorChain).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from crawler.ad_url import AdReference, synthetic_ad_id
from crawler.config import scraper_settings
from crawler.device_profiles import FETCH_PROFILES, DeviceProfile
from crawler.errors import UpstreamBlocked, UpstreamUnavailable
from crawler.selector_chain import SelectorChain, all_of, length_between
from processor.normalizer import MediaItem, NormalizedAd

# 로그인 월 / 에러 페이지 표식 (소문자 비교)
BLOCK_MARKERS = (
    "you must log in",
    "log in to continue",
    "log into facebook",
    'id="login_form"',
    "/checkpoint/",
    "this content isn't available",
    "this page isn't available",
    "sorry, something went wrong",
)

_CDN_PATTERN = re.compile(r"fbcdn\.net|scontent", re.IGNORECASE)
_ICON_PATTERN = re.compile(r"s(?:60x60|40x40|32x32)|/rsrc\.php|/emoji\.php", re.IGNORECASE)
_BACKGROUND_IMAGE = re.compile(r"background-image\s*:\s*url\(\s*(['\"]?)(.*?)\1\s*\)", re.IGNORECASE)

PAGE_ID_PATTERNS = (
    re.compile(r'"page_id"\s*:\s*"?(\d+)'),
    re.compile(r'"pageID"\s*:\s*"?(\d+)'),
    re.compile(r'"pageId"\s*:\s*"?(\d+)'),
    re.compile(r"view_all_page_id=(\d+)"),
    re.compile(r"[?&]page_id=(\d+)"),
)
LIBRARY_ID_PATTERN = re.compile(r"Library ID:?\s*(\d+)")

_MONTH_DATE = r"[A-Z][a-z]{2,8}\.? \d{1,2}, \d{4}"
STARTED_RUNNING_PATTERN = re.compile(rf"Started running on\s+({_MONTH_DATE})")
DATE_RANGE_PATTERN = re.compile(rf"({_MONTH_DATE})\s*[-–]\s*({_MONTH_DATE})")
ISO_DATE_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
US_DATE_PATTERN = re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4})\b")

GENERIC_TITLES = {"facebook", "ad library", "meta ad library", "ads library"}


# ── 날짜 ──

def parse_human_date(value: str) -> datetime | None:
    """'Jan 5, 2024' / 'January 5, 2024' / '2024-01-05' / '1/5/2024' → UTC datetime."""
    value = value.strip().replace(".", "")
    for fmt in ("%b %d, %Y", "%B %d, %Y", "%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def extract_dates(text: str) -> tuple[datetime | None, datetime | None]:
    """(first_seen, last_seen) 추출. 기간 표기 > 'Started running on' > ISO/미국식 날짜."""
    m = DATE_RANGE_PATTERN.search(text)
    if m:
        first, last = parse_human_date(m.group(1)), parse_human_date(m.group(2))
        if first and last:
            return first, last

    m = STARTED_RUNNING_PATTERN.search(text)
    if m:
        first = parse_human_date(m.group(1))
        if first:
            # 게재 중인 광고는 오늘까지로 본다
            last = datetime.now(timezone.utc) if "Active" in text else None
            return first, last

    found = [
        d for d in (
            parse_human_date(raw)
            for raw in ISO_DATE_PATTERN.findall(text) + US_DATE_PATTERN.findall(text)
        ) if d
    ]
    if not found:
        return None, None
    if len(found) == 1:
        return found[0], None
    return min(found), max(found)


def extract_page_id(html: str) -> str | None:
    for pattern in PAGE_ID_PATTERNS:
        m = pattern.search(html)
        if m:
            return m.group(1)
    return None


# ── 셀렉터 캐스케이드 ──

def _css_text(selector: str, separator: str = " "):
    def _extract(soup: BeautifulSoup) -> str | None:
        el = soup.select_one(selector)
        return el.get_text(separator, strip=True) if el else None
    return _extract


def _meta(prop: str):
    def _extract(soup: BeautifulSoup) -> str | None:
        el = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
        return el.get("content") if el else None
    return _extract


def _not_generic(value: str) -> bool:
    return value.strip().lower() not in GENERIC_TITLES


BRAND_CHAIN = SelectorChain(
    extractors=[
        _css_text('[data-testid="page_name"]'),
        _css_text(".page-name"),
        _css_text('a[role="link"] strong'),
        _css_text("h1"),
        _meta("og:site_name"),
    ],
    accept=all_of(length_between(1, 80), _not_generic),
)

HEADLINE_CHAIN = SelectorChain(
    extractors=[
        _css_text('[data-testid="ad_creative_title"]'),
        _css_text(".ad-creative-title"),
        _meta("og:title"),
        _meta("twitter:title"),
        _css_text("h2"),
    ],
    accept=_not_generic,
)

BODY_CHAIN = SelectorChain(
    extractors=[
        _css_text('[data-testid="ad_creative_body"]', "\n"),
        _css_text(".ad-creative-body", "\n"),
        _css_text('div[style*="white-space: pre-wrap"]', "\n"),
        _meta("og:description"),
        _meta("twitter:description"),
        _css_text("p", "\n"),
    ],
    accept=lambda v: (
        scraper_settings.min_ad_text_length
        <= len(v)
        <= scraper_settings.max_ad_text_length
    ),
)

CTA_CHAIN = SelectorChain(
    extractors=[
        _css_text('[data-testid="cta_button"]'),
        _css_text(".cta-button"),
        _css_text("button"),
        _css_text('[role="button"]'),
    ],
    accept=lambda v: 2 <= len(v) <= 40,
)

DESCRIPTION_CHAIN = SelectorChain(
    extractors=[
        _css_text('[data-testid="ad_creative_description"]'),
        _css_text('[data-testid="ad_creative_link_description"]'),
        _css_text(".ad-creative-description"),
    ],
    accept=length_between(0, 500),
)


# ── 미디어 ──

def _is_cdn_media(url: str | None) -> bool:
    return bool(url) and bool(_CDN_PATTERN.search(url)) and not _ICON_PATTERN.search(url)


def extract_media(soup: BeautifulSoup) -> list[MediaItem]:
    """CDN img → video/source/poster → background-image → og:image/og:video 순."""
    items: list[MediaItem] = []
    seen: set[str] = set()

    def _push(url: str | None, media_type: str, source: str, alt: str | None = None) -> None:
        if not url:
            return
        url = url.strip()
        key = url.split("?")[0]
        if not url or key in seen:
            return
        seen.add(key)
        items.append(MediaItem(url=url, type=media_type, source=source, alt=alt or None))

    for img in soup.find_all("img"):
        src = img.get("src")
        if _is_cdn_media(src):
            _push(src, "image", "img", img.get("alt"))

    for video in soup.find_all("video"):
        src = video.get("src")
        if not src:
            source = video.find("source")
            src = source.get("src") if source else None
        if _is_cdn_media(src):
            _push(src, "video", "video")
        poster = video.get("poster")
        if _is_cdn_media(poster):
            _push(poster, "image", "video_poster")

    for el in soup.find_all(style=_BACKGROUND_IMAGE):
        m = _BACKGROUND_IMAGE.search(el.get("style", ""))
        if m and _is_cdn_media(m.group(2)):
            _push(m.group(2), "image", "background_image")

    for prop, media_type in (("og:image", "image"), ("og:video", "video"), ("og:video:url", "video")):
        _push(_meta(prop)(soup), media_type, prop)

    return items


# ── 파싱 ──

def check_blocked(html: str) -> None:
    """차단 페이지면 UpstreamBlocked."""
    if len(html) < scraper_settings.min_html_length:
        raise UpstreamBlocked(f"html too short ({len(html)} chars)")
    lower = html.lower()
    for marker in BLOCK_MARKERS:
        if marker in lower:
            raise UpstreamBlocked(f"block marker found: {marker!r}")


def parse_ad_html(html: str, ref: AdReference) -> NormalizedAd:
    """원본 HTML → NormalizedAd (resolved_by='html')."""
    soup = BeautifulSoup(html, "html.parser")

    ad_id = ref.ad_id
    if not ad_id:
        m = LIBRARY_ID_PATTERN.search(html)
        ad_id = m.group(1) if m else synthetic_ad_id(ref.url)

    page_text = soup.get_text(" ", strip=True)
    first_seen, last_seen = extract_dates(page_text)

    return NormalizedAd(
        ad_id=ad_id,
        source_url=ref.url,
        page_id=extract_page_id(html),
        brand_name=BRAND_CHAIN.first(soup),
        headline=HEADLINE_CHAIN.first(soup),
        ad_text=BODY_CHAIN.first(soup),
        cta=CTA_CHAIN.first(soup),
        description=DESCRIPTION_CHAIN.first(soup),
        media_items=extract_media(soup),
        first_seen_date=first_seen,
        last_seen_date=last_seen,
        resolved_by="html",
    )


# ── 수집 단계 ──

class AdPageScraperStage:
    """HTML 스크레이핑 단계. 쓸만한 내용이 없으면 None."""

    name = "html"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        profiles: tuple[DeviceProfile, ...] = FETCH_PROFILES,
    ):
        self._client = client
        self.profiles = profiles

    async def fetch_html(self, client: httpx.AsyncClient, url: str) -> str:
        """프로파일 순서대로 요청. 모두 실패하면 UpstreamUnavailable."""
        last_error = "no profiles"
        for profile in self.profiles:
            try:
                response = await client.get(
                    url, headers=profile.http_headers(), follow_redirects=True,
                )
            except httpx.RequestError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "[{}] fetch failed profile={} url={}: {}",
                    self.name, profile.device_type, url, last_error,
                )
                continue
            if response.is_success:
                return response.text
            last_error = f"http {response.status_code}"
            logger.warning(
                "[{}] fetch not OK profile={} status={} url={}",
                self.name, profile.device_type, response.status_code, url,
            )
        raise UpstreamUnavailable(last_error)

    async def try_resolve(self, ref: AdReference) -> NormalizedAd | None:
        if self._client is not None:
            html = await self.fetch_html(self._client, ref.url)
        else:
            timeout = httpx.Timeout(
                scraper_settings.request_timeout_sec,
                connect=scraper_settings.connect_timeout_sec,
            )
            async with httpx.AsyncClient(timeout=timeout) as client:
                html = await self.fetch_html(client, ref.url)

        check_blocked(html)
        ad = parse_ad_html(html, ref)
        if not ad.has_content:
            logger.info("[{}] no usable content ad_id={}", self.name, ad.ad_id)
            return None

        logger.info(
            "[{}] scraped ad_id={} brand='{}' media={}",
            self.name, ad.ad_id, ad.brand_name, len(ad.media_items),
        )
        return ad
