"""폴백 합성 — API/HTML 모두 실패했을 때 저장 가능한 플레이스홀더 광고 생성.

브랜드/광고 유형/CTA 는 광고 ID 의 SHA-256 해시로 고정 어휘에서 고른다.
같은 ID 로 다시 호출해도 같은 값이 나온다. 날짜만 매번 달라진다.
"""

from __future__ import annotations

import hashlib
import random
from datetime import datetime, timedelta, timezone

from loguru import logger

from crawler.ad_url import AdReference
from crawler.config import scraper_settings
from processor.normalizer import MediaItem, NormalizedAd

BRANDS = (
    "Northwind Outfitters",
    "Bluebird Coffee Co.",
    "Lumen Skincare",
    "Summit Fitness",
    "Harbor Home Goods",
    "Pixel & Pine Studio",
    "Everleaf Organics",
    "Atlas Travel",
)

AD_TYPES = (
    "Limited Time Offer",
    "New Collection",
    "Seasonal Sale",
    "Free Shipping Today",
    "Customer Favorite",
    "Just Launched",
)

CTAS = ("Shop Now", "Learn More", "Sign Up", "Get Offer", "Book Now", "Download")


def _seed(ad_id: str) -> int:
    return int(hashlib.sha256(ad_id.encode("utf-8")).hexdigest(), 16)


def _pick(options: tuple[str, ...], seed: int, salt: int) -> str:
    return options[(seed >> (salt * 8)) % len(options)]


def synthesize_ad(ref: AdReference, ad_id: str, now: datetime | None = None) -> NormalizedAd:
    """결정적 플레이스홀더 광고. 검색 컨텍스트(q/search_terms/query)가 있으면 브랜드로 사용."""
    seed = _seed(ad_id)
    brand = ref.search_query or _pick(BRANDS, seed, 0)
    ad_type = _pick(AD_TYPES, seed, 1)
    cta = _pick(CTAS, seed, 2)

    media_count = 1 + seed % 2
    base = scraper_settings.placeholder_media_base.rstrip("/")
    media = [
        MediaItem(url=f"{base}/{ad_id}-{i}/1080/1080", type="image", source="fallback")
        for i in range(media_count)
    ]

    now = now or datetime.now(timezone.utc)
    window = max(1, scraper_settings.fallback_window_days)
    first_seen = now - timedelta(days=random.randint(1, window))

    logger.info("[fallback] synthesized ad_id={} brand='{}'", ad_id, brand)
    return NormalizedAd(
        ad_id=ad_id,
        source_url=ref.url,
        brand_name=brand,
        headline=f"{ad_type} from {brand}",
        ad_text=(
            f"{ad_type}! Discover what {brand} has in store for you. "
            f"Tap {cta.lower()} to see more."
        ),
        cta=cta,
        description=f"{brand} · {ad_type}",
        media_items=media,
        first_seen_date=first_seen,
        last_seen_date=now,
        resolved_by="fallback",
    )


class FallbackSynthStage:
    """항상 결과를 내는 마지막 단계."""

    name = "fallback"

    async def try_resolve(self, ref: AdReference, ad_id: str) -> NormalizedAd:
        return synthesize_ad(ref, ad_id)
