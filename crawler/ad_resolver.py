"""광고 URL → NormalizedAd 해석 파이프라인.

공식 API → HTML 스크레이핑 → 폴백 합성 순서로 단계를 시도하고,
첫 번째로 결과를 낸 단계에서 멈춘다. URL 검증 실패(InvalidAdUrl)만
호출자에게 전파되고, 그 이후의 업스트림 실패는 로그 후 다음 단계로 넘긴다.
"""

from __future__ import annotations

from typing import Protocol

import httpx
from loguru import logger

from crawler.ad_page_scraper import AdPageScraperStage
from crawler.ad_url import AdReference, synthetic_ad_id, validate_ad_url
from crawler.errors import ScraperError
from crawler.fallback_synth import FallbackSynthStage
from crawler.meta_library import MetaAdsArchiveStage
from processor.normalizer import NormalizedAd


class ResolveStage(Protocol):
    name: str

    async def try_resolve(self, ref: AdReference) -> NormalizedAd | None: ...


class AdResolver:
    def __init__(
        self,
        stages: list[ResolveStage] | None = None,
        fallback: FallbackSynthStage | None = None,
    ):
        self.stages: list[ResolveStage] = (
            stages if stages is not None
            else [MetaAdsArchiveStage(), AdPageScraperStage()]
        )
        self.fallback = fallback or FallbackSynthStage()

    @classmethod
    def with_client(cls, client: httpx.AsyncClient, **api_options) -> "AdResolver":
        """API/HTML 단계가 같은 httpx 클라이언트를 쓰도록 구성."""
        return cls(stages=[
            MetaAdsArchiveStage(client=client, **api_options),
            AdPageScraperStage(client=client),
        ])

    async def resolve(self, url: str) -> NormalizedAd:
        ref = validate_ad_url(url)
        logger.info("[resolver] resolving ad_id={} url={}", ref.ad_id, ref.url)

        for stage in self.stages:
            try:
                result = await stage.try_resolve(ref)
            except (ScraperError, httpx.HTTPError, ValueError) as exc:
                logger.warning(
                    "[resolver] stage '{}' failed for ad_id={}: {}: {}",
                    stage.name, ref.ad_id, type(exc).__name__, exc,
                )
                continue
            if result is not None:
                logger.info("[resolver] ad_id={} resolved by '{}'", result.ad_id, stage.name)
                return result

        ad_id = ref.ad_id or synthetic_ad_id(ref.url)
        return await self.fallback.try_resolve(ref, ad_id)


_default_resolver: AdResolver | None = None


async def resolve_ad(url: str) -> NormalizedAd:
    """기본 파이프라인으로 광고 URL 해석."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = AdResolver()
    return await _default_resolver.resolve(url)
