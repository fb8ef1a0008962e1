from datetime import datetime, timezone
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from crawler.ad_url import validate_ad_url
from crawler.fallback_synth import AD_TYPES, BRANDS, CTAS, synthesize_ad

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_same_id_same_content():
    ref = validate_ad_url("https://www.facebook.com/ads/library/?id=31415926")
    a = synthesize_ad(ref, "31415926", now=NOW)
    b = synthesize_ad(ref, "31415926", now=NOW)
    assert a.brand_name == b.brand_name
    assert a.headline == b.headline
    assert a.cta == b.cta
    assert a.media_urls == b.media_urls


def test_fields_from_vocabulary():
    ref = validate_ad_url("https://www.facebook.com/ads/library/?id=27182818")
    ad = synthesize_ad(ref, "27182818", now=NOW)
    assert ad.ad_id == "27182818"
    assert ad.brand_name in BRANDS
    assert ad.cta in CTAS
    assert any(ad.headline.startswith(t) for t in AD_TYPES)
    assert 1 <= len(ad.media_items) <= 2
    assert all("27182818" in url for url in ad.media_urls)
    assert ad.resolved_by == "fallback"


def test_dates_within_window():
    ref = validate_ad_url("https://www.facebook.com/ads/library/?id=1")
    ad = synthesize_ad(ref, "1", now=NOW)
    assert ad.last_seen_date == NOW
    assert 1 <= ad.runtime_days <= 30


def test_search_query_used_as_brand():
    ref = validate_ad_url("https://www.facebook.com/ads/library/?id=1&q=Bean%20Bros")
    ad = synthesize_ad(ref, "1", now=NOW)
    assert ad.brand_name == "Bean Bros"
    assert ad.headline.endswith("from Bean Bros")
