from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import httpx
import pytest

from crawler.ad_page_scraper import AdPageScraperStage
from crawler.ad_resolver import AdResolver
from crawler.errors import InvalidAdUrl, UpstreamUnavailable
from crawler.meta_library import MetaAdsArchiveStage
from processor.normalizer import NormalizedAd


class _RecordingStage:
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    async def try_resolve(self, ref):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


def _unreachable_client() -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_invalid_url_raises_before_any_stage():
    stage = _RecordingStage("api")
    resolver = AdResolver(stages=[stage])
    with pytest.raises(InvalidAdUrl):
        await resolver.resolve("https://example.com/ads/library/?id=1")
    assert stage.calls == 0


@pytest.mark.asyncio
async def test_first_successful_stage_wins():
    url = "https://www.facebook.com/ads/library/?id=77"
    found = NormalizedAd(ad_id="77", source_url=url, brand_name="Acme", resolved_by="api")
    api = _RecordingStage("api", result=found)
    html = _RecordingStage("html")
    ad = await AdResolver(stages=[api, html]).resolve(url)
    assert ad is found
    assert html.calls == 0


@pytest.mark.asyncio
async def test_stage_errors_fall_through_to_fallback():
    api = _RecordingStage("api", error=UpstreamUnavailable("quota"))
    html = _RecordingStage("html", error=httpx.ReadTimeout("slow"))
    ad = await AdResolver(stages=[api, html]).resolve(
        "https://www.facebook.com/ads/library/?id=999999999999"
    )
    assert (api.calls, html.calls) == (1, 1)
    assert ad.ad_id == "999999999999"
    assert ad.resolved_by == "fallback"
    assert ad.brand_name
    assert ad.headline
    assert ad.media_items


@pytest.mark.asyncio
async def test_offline_pipeline_still_produces_record():
    resolver = AdResolver(stages=[
        MetaAdsArchiveStage(access_token=""),
        AdPageScraperStage(client=_unreachable_client()),
    ])
    ad = await resolver.resolve("https://www.facebook.com/brand/posts/123456789/")
    assert ad.ad_id == "123456789"
    assert ad.resolved_by == "fallback"


@pytest.mark.asyncio
async def test_with_client_shares_transport():
    client = _unreachable_client()
    resolver = AdResolver.with_client(client, access_token="t", max_retries=0)
    assert [s.name for s in resolver.stages] == ["api", "html"]
    ad = await resolver.resolve("https://www.facebook.com/ads/library/?id=5")
    assert ad.resolved_by == "fallback"
