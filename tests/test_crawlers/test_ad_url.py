from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import pytest

from crawler.ad_url import extract_ad_id, is_facebook_host, synthetic_ad_id, validate_ad_url
from crawler.errors import InvalidAdUrl


def test_ad_library_url_with_id():
    ref = validate_ad_url("https://www.facebook.com/ads/library/?id=123456789")
    assert ref.ad_id == "123456789"
    assert ref.is_ad_library is True


def test_post_url_with_numeric_segment():
    ref = validate_ad_url("https://m.facebook.com/somebrand/posts/987654321/")
    assert ref.ad_id == "987654321"
    assert ref.is_ad_library is False


def test_search_context_kept():
    ref = validate_ad_url(
        "https://www.facebook.com/ads/library/?id=555&q=coffee&country=US"
    )
    assert ref.search_query == "coffee"


@pytest.mark.parametrize("url", [
    "",
    "   ",
    "ftp://www.facebook.com/ads/library/?id=1",
    "https://www.example.com/ads/library/?id=1",
    "https://facebook.com.evil.io/ads/library/?id=1",
    "https://www.facebook.com/somebrand",
    "https://www.facebook.com/ads/library/",
])
def test_invalid_urls_rejected(url):
    with pytest.raises(InvalidAdUrl):
        validate_ad_url(url)


def test_invalid_ad_url_is_value_error():
    with pytest.raises(ValueError):
        validate_ad_url("not a url")


def test_extract_ad_id_prefers_id_param():
    assert extract_ad_id("https://www.facebook.com/ads/library/?ad_id=1&id=42") == "42"


def test_extract_ad_id_from_path_patterns():
    assert extract_ad_id("https://www.facebook.com/ads/library/778899") == "778899"
    assert extract_ad_id("https://www.facebook.com/x/?ad_id=31337") == "31337"
    assert extract_ad_id("https://www.facebook.com/brand/videos/1234567/") == "1234567"
    assert extract_ad_id("https://www.facebook.com/brand/") is None


def test_is_facebook_host():
    assert is_facebook_host("https://business.facebook.com/x")
    assert not is_facebook_host("https://fb.com/x")


def test_synthetic_ad_id_is_stable():
    url = "https://www.facebook.com/brand/posts/1"
    assert synthetic_ad_id(url) == synthetic_ad_id(url)
    assert synthetic_ad_id(url).startswith("url_")
    assert len(synthetic_ad_id(url)) == len("url_") + 16
