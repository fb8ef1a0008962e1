from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from extension.card_detector import (
    AdCardDetector,
    ContainerSnapshot,
    is_brand_candidate,
    is_body_candidate,
    is_content_image,
    string_hash,
)

MAIN_IMAGE = {
    "src": "https://scontent-iad3-1.xx.fbcdn.net/v/t39.35426-6/p600x600/creative.jpg",
    "alt": "",
    "width": 500,
    "height": 500,
}
PROFILE_IMAGE = {
    "src": "https://scontent-iad3-1.xx.fbcdn.net/v/t39.30808-1/s60x60/profile.jpg",
    "alt": "Acme Outdoor",
    "width": 36,
    "height": 36,
}
AD_BODY = "Stay warm this winter with jackets built for the trail."


def _card(key, ad_id, parent=None, **overrides):
    raw = {
        "key": key,
        "parentKey": parent,
        "text": f"Active Library ID: {ad_id} Started running on Jan 5, 2024 Sponsored {AD_BODY}",
        "width": 600,
        "height": 800,
        "brandCandidates": [["Acme Outdoor"]],
        "textCandidates": [[AD_BODY]],
        "images": [PROFILE_IMAGE, MAIN_IMAGE],
        "videos": [],
    }
    raw.update(overrides)
    return ContainerSnapshot.from_js(raw)


def test_string_hash_matches_page_script():
    assert string_hash("") == 0
    assert string_hash("a") == 97
    assert string_hash("ab") == 97 * 31 + 98
    # 32비트 부호 있는 정수로 넘침
    assert -2**31 <= string_hash("Sponsored " * 40) < 2**31


def test_from_js_falls_back_to_text_checks():
    block = ContainerSnapshot.from_js({"key": "1", "text": "Library ID: 5 Library ID: 5 Sponsored See ad details"})
    assert block.library_ids == ["5"]
    assert block.sponsored_count == 1
    assert block.has_see_ad_details


def test_brand_candidate_filter():
    assert is_brand_candidate("Acme Outdoor")
    assert not is_brand_candidate("A")
    assert not is_brand_candidate("12 ads use this creative")
    assert not is_brand_candidate("See all ads")
    assert not is_brand_candidate("Sponsored")
    assert is_brand_candidate("Adsmith Studio")


def test_body_candidate_filter():
    assert is_body_candidate(AD_BODY)
    assert not is_body_candidate("Too short")
    assert not is_body_candidate("Started running on Jan 5, 2024 · Total active time")
    assert not is_body_candidate("3 ads use this creative and text")


def test_content_image_rules():
    assert is_content_image(MAIN_IMAGE["src"])
    assert not is_content_image(PROFILE_IMAGE["src"], 600, 600)
    assert not is_content_image("https://example.com/p600x600/x.jpg", 600, 600)
    assert is_content_image("https://scontent.xx.fbcdn.net/v/x.jpg", 120, 120)
    assert not is_content_image("https://scontent.xx.fbcdn.net/v/x.jpg", 80, 300)


def test_library_id_card_extracted():
    cards = AdCardDetector().detect([_card("1", "111222333")])
    assert len(cards) == 1
    card = cards[0]
    assert card.ad_id == "111222333"
    assert card.signal == "library_id"
    assert card.brand_name == "Acme Outdoor"
    assert card.ad_text == AD_BODY
    assert card.media_urls == [MAIN_IMAGE["src"]]


def test_duplicate_library_ids_extracted_once():
    cards = AdCardDetector().detect([_card("1", "42"), _card("2", "42")])
    assert [c.ad_id for c in cards] == ["42"]
    assert cards[0].duplicate_keys == ["2"]


def test_nested_containers_suppressed():
    blocks = [
        _card("1", "42"),
        _card("2", "42", parent="1", width=580, height=780),
        _card("3", "42", parent="2", width=560, height=760),
    ]
    cards = AdCardDetector().detect(blocks)
    assert [c.key for c in cards] == ["1"]


def test_wrapper_with_several_ids_is_not_a_card():
    wrapper = ContainerSnapshot.from_js({
        "key": "0",
        "text": "Library ID: 1001 ... Library ID: 1002",
        "width": 1200,
        "height": 2000,
    })
    blocks = [wrapper, _card("1", "1001", parent="0"), _card("2", "1002", parent="0")]
    cards = AdCardDetector().detect(blocks)
    assert [c.ad_id for c in cards] == ["1001", "1002"]


def test_undersized_container_skipped():
    assert AdCardDetector().detect([_card("1", "42", width=200, height=150)]) == []


def test_sponsored_signal_without_library_id():
    text = "Acme Outdoor Sponsored " + AD_BODY + " See ad details"
    block = ContainerSnapshot.from_js({
        "key": "7",
        "text": text,
        "width": 500,
        "height": 700,
        "images": [MAIN_IMAGE],
    })
    cards = AdCardDetector().detect([block], now_ms=1700000000000)
    assert len(cards) == 1
    assert cards[0].signal == "sponsored"
    assert cards[0].ad_id == f"sponsored_{string_hash(text[:200])}_1700000000000"


def test_sponsored_signal_needs_content_image():
    block = ContainerSnapshot.from_js({
        "key": "7",
        "text": "Acme Sponsored " + AD_BODY + " See ad details",
        "width": 500,
        "height": 700,
        "images": [PROFILE_IMAGE],
    })
    assert AdCardDetector().detect([block]) == []


def test_sponsored_twice_is_a_feed_wrapper():
    block = ContainerSnapshot.from_js({
        "key": "7",
        "text": "Sponsored A See ad details Sponsored B See ad details",
        "width": 500,
        "height": 700,
        "images": [MAIN_IMAGE],
    })
    assert AdCardDetector().detect([block]) == []


def test_video_media_before_images():
    block = _card("1", "42", videos=[{
        "src": "https://video-iad3-1.xx.fbcdn.net/v/t42/clip.mp4",
        "poster": "https://scontent-iad3-1.xx.fbcdn.net/v/t15/poster.jpg",
    }])
    items = AdCardDetector().detect([block])[0].media_items
    assert [(m.type, m.source) for m in items] == [
        ("video", "video_src"),
        ("image", "video_poster"),
        ("image", "main_image"),
    ]


def test_to_ad_data_defaults():
    card = AdCardDetector().detect([_card("1", "42", brandCandidates=[], textCandidates=[])])[0]
    data = card.to_ad_data()
    assert data["fbAdId"] == "42"
    assert data["brandName"] == "Unknown Brand"
    assert data["adText"] == ""
