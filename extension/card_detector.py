"""인페이지 광고 카드 디텍터.

페이지 쪽 스크립트는 DOM 스냅샷만 만든다 (후보 div 의 텍스트, 크기,
셀렉터별 후보 문자열, 미디어). 어떤 컨테이너가 광고 카드인지,
어떤 필드를 채택할지는 전부 이 모듈의 순수 파이썬 로직(detect)이 정한다.

판정 규칙:
  - 1차 신호: 컨테이너 텍스트에 "Library ID: <숫자>" 가 정확히 한 종류
  - 2차 신호: Library ID 없음 + "Sponsored" 1회 + 큰 콘텐츠 이미지
    + ("See ad details" 또는 "Active")
  - 크기 미달 컨테이너 제외, 같은 스캔 안에서 ID 중복 제외
    (중복 컨테이너도 처리 마커를 받아 재스캔에서 빠짐),
    이미 채택된 컨테이너 안쪽 컨테이너 제외
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field

from loguru import logger
from playwright.async_api import Page

from crawler.selector_chain import SelectorChain, first_accepted
from extension.config import ExtensionSettings, extension_settings
from processor.normalizer import MediaItem, clean_multiline, clean_text

PROCESSED_ATTR = "data-adboard-processed"
CANDIDATE_ATTR = "data-adboard-candidate"
AD_ID_ATTR = "data-adboard-ad-id"

LIBRARY_ID_PATTERN = re.compile(r"Library ID:\s*(\d+)")

BRAND_SELECTORS = (
    'a[target="_blank"][href*="facebook.com"] '
    "span.x8t9es0.x1fvot60.xxio538.x108nfp6.xq9mrsl.x1h4wwuj.x117nqv4.xeuugli",
    'a[href*="facebook.com"] span',
    "img[alt]",
    "strong",
    "b",
    "h1",
    "h2",
    "h3",
)

TEXT_SELECTORS = (
    'div[style*="white-space: pre-wrap"] span',
    'div[tabindex="0"][role="button"] div span',
    'span[style*="white-space"]',
    "div._4ik4 span",
)

TEXT_BOILERPLATE = (
    "Library ID",
    "Sponsored",
    "Started running",
    "See ad details",
    "This ad has",
)
_ADS_COUNT = re.compile(r"^\d+\s+ads")
_ADS_WORD = re.compile(r"\bads\b", re.IGNORECASE)

_CDN = re.compile(r"fbcdn|scontent")
_ICON_SIZES = ("s60x60", "s40x40", "s32x32")
_URL_SIZE = re.compile(r"[sp](\d{2,4})x(\d{2,4})")
MIN_URL_IMAGE_SIZE = 200
MIN_RENDERED_IMAGE_SIZE = 100

MAX_SNAPSHOT_TEXT = 2000
MAX_CANDIDATES_PER_SELECTOR = 10


def string_hash(value: str) -> int:
    """페이지 스크립트의 32비트 문자열 해시 ((h << 5) - h + c) 와 같은 값."""
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def is_brand_candidate(value: str) -> bool:
    return (
        1 < len(value) < 50
        and "Library ID" not in value
        and "Sponsored" not in value
        and not _ADS_WORD.search(value)
        and not value[0].isdigit()
    )


def is_body_candidate(value: str) -> bool:
    return (
        20 < len(value) < 1000
        and not any(marker in value for marker in TEXT_BOILERPLATE)
        and not _ADS_COUNT.match(value)
    )


def url_embedded_size(url: str) -> int | None:
    m = _URL_SIZE.search(url)
    if not m:
        return None
    return max(int(m.group(1)), int(m.group(2)))


def is_content_image(src: str, width: float = 0, height: float = 0) -> bool:
    """아이콘/프로필 사진이 아닌 본문 이미지인가."""
    if not src or not _CDN.search(src):
        return False
    if any(size in src for size in _ICON_SIZES):
        return False
    embedded = url_embedded_size(src)
    if embedded is not None and embedded >= MIN_URL_IMAGE_SIZE:
        return True
    return width >= MIN_RENDERED_IMAGE_SIZE and height >= MIN_RENDERED_IMAGE_SIZE


# ── 스냅샷 ──

@dataclass
class ContainerSnapshot:
    """페이지 스크립트가 돌려준 후보 컨테이너 하나."""

    key: str
    text: str
    parent_key: str | None = None
    library_ids: list[str] = field(default_factory=list)
    sponsored_count: int = 0
    has_see_ad_details: bool = False
    has_active: bool = False
    width: float = 0
    height: float = 0
    brand_candidates: list[list[str]] = field(default_factory=list)
    text_candidates: list[list[str]] = field(default_factory=list)
    images: list[dict] = field(default_factory=list)
    videos: list[dict] = field(default_factory=list)

    @classmethod
    def from_js(cls, raw: dict) -> "ContainerSnapshot":
        text = raw.get("text") or ""
        ids = raw.get("libraryIds")
        if ids is None:
            ids = list(dict.fromkeys(LIBRARY_ID_PATTERN.findall(text)))
        return cls(
            key=str(raw.get("key")),
            parent_key=str(raw["parentKey"]) if raw.get("parentKey") is not None else None,
            text=text,
            library_ids=[str(i) for i in ids],
            sponsored_count=int(raw.get("sponsoredCount", text.count("Sponsored"))),
            has_see_ad_details=bool(raw.get("hasSeeAdDetails", "See ad details" in text)),
            has_active=bool(raw.get("hasActive", "Active" in text)),
            width=float(raw.get("width") or 0),
            height=float(raw.get("height") or 0),
            brand_candidates=[list(c) for c in raw.get("brandCandidates") or []],
            text_candidates=[list(c) for c in raw.get("textCandidates") or []],
            images=list(raw.get("images") or []),
            videos=list(raw.get("videos") or []),
        )

    def has_content_image(self) -> bool:
        return any(
            is_content_image(img.get("src", ""), img.get("width", 0), img.get("height", 0))
            for img in self.images
        )


@dataclass
class AdCard:
    ad_id: str
    signal: str  # "library_id" | "sponsored"
    key: str
    brand_name: str | None = None
    ad_text: str | None = None
    media_items: list[MediaItem] = field(default_factory=list)
    width: float = 0
    height: float = 0
    scan_index: int = 0
    # 같은 패스에서 같은 ID 로 건너뛴 컨테이너. 함께 처리 마커를 받는다.
    duplicate_keys: list[str] = field(default_factory=list)

    @property
    def media_urls(self) -> list[str]:
        return [m.url for m in self.media_items]

    def to_ad_data(self) -> dict:
        """저장 요청(adData) 형태."""
        return {
            "fbAdId": self.ad_id,
            "brandName": self.brand_name or "Unknown Brand",
            "adText": self.ad_text or "",
            "mediaUrls": self.media_urls,
        }


# ── 페이지 스크립트 ──

SNAPSHOT_SCRIPT = r"""(opts) => {
    const PROCESSED = 'data-adboard-processed';
    const CANDIDATE = 'data-adboard-candidate';
    const ID_RE = /Library ID:\s*(\d+)/g;

    document.querySelectorAll('[' + CANDIDATE + ']').forEach(el => el.removeAttribute(CANDIDATE));

    const textWithBreaks = (node) => {
        const clone = node.cloneNode(true);
        clone.querySelectorAll('br').forEach(br => br.replaceWith('\n'));
        return clone.textContent || '';
    };
    const collect = (root, selector, read) => {
        const out = [];
        let nodes = [];
        try { nodes = root.querySelectorAll(selector); } catch (e) { return out; }
        for (const node of nodes) {
            const value = (read(node) || '').trim();
            if (value) out.push(value);
            if (out.length >= opts.maxCandidates) break;
        }
        return out;
    };

    const blocks = [];
    let next = 0;
    for (const el of document.querySelectorAll('div')) {
        if (el.closest('[' + PROCESSED + ']') || el.querySelector('[' + PROCESSED + ']')) continue;
        if (el.closest('[data-adboard-ui]')) continue;
        const text = el.textContent || '';
        if (!text.includes('Library ID') && !text.includes('Sponsored')) continue;

        const key = String(next++);
        el.setAttribute(CANDIDATE, key);
        const parent = el.parentElement ? el.parentElement.closest('[' + CANDIDATE + ']') : null;
        const ids = [...new Set(Array.from(text.matchAll(ID_RE), m => m[1]))];
        const detailed = ids.length <= 1;
        const rect = el.getBoundingClientRect();

        blocks.push({
            key,
            parentKey: parent ? parent.getAttribute(CANDIDATE) : null,
            text: text.slice(0, opts.maxText),
            libraryIds: ids,
            sponsoredCount: text.split('Sponsored').length - 1,
            hasSeeAdDetails: text.includes('See ad details'),
            hasActive: text.includes('Active'),
            width: rect.width,
            height: rect.height,
            brandCandidates: detailed
                ? opts.brandSelectors.map(sel => collect(el, sel, n => n.textContent || n.getAttribute('alt') || ''))
                : [],
            textCandidates: detailed
                ? opts.textSelectors.map(sel => collect(el, sel, textWithBreaks))
                : [],
            images: detailed
                ? Array.from(el.querySelectorAll('img')).slice(0, 30).map(img => ({
                    src: img.src || '', alt: img.alt || '',
                    width: img.offsetWidth, height: img.offsetHeight,
                }))
                : [],
            videos: detailed
                ? Array.from(el.querySelectorAll('video')).slice(0, 10).map(v => ({
                    src: v.src || '', poster: v.poster || '',
                }))
                : [],
        });
    }
    return blocks;
}"""

MARK_SCRIPT = r"""(cards) => {
    for (const card of cards) {
        for (const key of card.keys) {
            const el = document.querySelector('[data-adboard-candidate="' + key + '"]');
            if (!el) continue;
            el.setAttribute('data-adboard-processed', 'true');
            el.setAttribute('data-adboard-ad-id', card.adId);
        }
    }
    document.querySelectorAll('[data-adboard-candidate]').forEach(el => el.removeAttribute('data-adboard-candidate'));
    return cards.length;
}"""


# ── 디텍터 ──

class AdCardDetector:
    def __init__(self, settings: ExtensionSettings = extension_settings):
        self.min_width = settings.min_card_width
        self.min_height = settings.min_card_height
        self.brand_chain = SelectorChain(
            extractors=[self._candidate_picker("brand_candidates", i, is_brand_candidate)
                        for i in range(len(BRAND_SELECTORS))],
        )
        self.text_chain = SelectorChain(
            extractors=[self._candidate_picker("text_candidates", i, is_body_candidate, multiline=True)
                        for i in range(len(TEXT_SELECTORS))],
        )

    @staticmethod
    def _candidate_picker(attr: str, index: int, accept, multiline: bool = False):
        clean = clean_multiline if multiline else clean_text

        def _pick(block: ContainerSnapshot) -> str | None:
            groups = getattr(block, attr)
            if index >= len(groups):
                return None
            return first_accepted((clean(c) for c in groups[index]), accept)
        return _pick

    def classify(self, block: ContainerSnapshot, now_ms: int | None = None) -> tuple[str | None, str | None]:
        """(ad_id, signal). 카드가 아니면 (None, None)."""
        if len(block.library_ids) == 1:
            return block.library_ids[0], "library_id"
        if block.library_ids:
            # 여러 카드를 감싼 래퍼
            return None, None

        if (
            block.sponsored_count == 1
            and (block.has_see_ad_details or block.has_active)
            and block.has_content_image()
        ):
            now_ms = int(time.time() * 1000) if now_ms is None else now_ms
            return f"sponsored_{string_hash(block.text[:200])}_{now_ms}", "sponsored"
        return None, None

    def has_card_size(self, block: ContainerSnapshot) -> bool:
        return block.width >= self.min_width and block.height >= self.min_height

    def extract_media(self, block: ContainerSnapshot) -> list[MediaItem]:
        """동영상(src, poster) 먼저, 그 다음 본문 이미지."""
        items: list[MediaItem] = []
        seen: set[str] = set()

        def _push(url: str, media_type: str, source: str, alt: str | None = None) -> None:
            if url and url not in seen:
                seen.add(url)
                items.append(MediaItem(url=url, type=media_type, source=source, alt=alt or None))

        for video in block.videos:
            src = video.get("src") or ""
            if "fbcdn" in src or "video" in src:
                _push(src, "video", "video_src")
            poster = video.get("poster") or ""
            if "fbcdn" in poster:
                _push(poster, "image", "video_poster")

        for img in block.images:
            src = img.get("src") or ""
            if is_content_image(src, img.get("width", 0), img.get("height", 0)):
                _push(src, "image", "main_image", img.get("alt"))
        return items

    def extract(self, block: ContainerSnapshot, ad_id: str, signal: str, index: int) -> AdCard:
        return AdCard(
            ad_id=ad_id,
            signal=signal,
            key=block.key,
            brand_name=self.brand_chain.first(block),
            ad_text=self.text_chain.first(block),
            media_items=self.extract_media(block),
            width=block.width,
            height=block.height,
            scan_index=index,
        )

    def detect(self, blocks: list[ContainerSnapshot], now_ms: int | None = None) -> list[AdCard]:
        """DOM 순서대로 판정. 같은 패스 안에서 ID 는 한 번만."""
        cards: list[AdCard] = []
        by_id: dict[str, AdCard] = {}
        covered: set[str] = set()

        for block in blocks:
            if block.parent_key is not None and block.parent_key in covered:
                covered.add(block.key)
                continue

            ad_id, signal = self.classify(block, now_ms)
            if ad_id is None:
                continue
            if not self.has_card_size(block):
                continue
            covered.add(block.key)
            if ad_id in by_id:
                by_id[ad_id].duplicate_keys.append(block.key)
                continue

            card = self.extract(block, ad_id, signal, len(cards))
            by_id[ad_id] = card
            cards.append(card)
        return cards

    async def scan_page(self, page: Page, now_ms: int | None = None) -> list[AdCard]:
        """페이지 스냅샷 → 판정 → 채택된 컨테이너에 처리 마커."""
        raw_blocks = await page.evaluate(SNAPSHOT_SCRIPT, {
            "maxText": MAX_SNAPSHOT_TEXT,
            "maxCandidates": MAX_CANDIDATES_PER_SELECTOR,
            "brandSelectors": list(BRAND_SELECTORS),
            "textSelectors": list(TEXT_SELECTORS),
        })
        blocks = [ContainerSnapshot.from_js(raw) for raw in raw_blocks or []]
        cards = self.detect(blocks, now_ms)
        marks = [{"keys": [c.key, *c.duplicate_keys], "adId": c.ad_id} for c in cards]
        await page.evaluate(MARK_SCRIPT, marks)
        logger.info("[detector] {} candidates → {} ad cards", len(blocks), len(cards))
        return cards
