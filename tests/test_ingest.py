"""NormalizedAd → 자산 적재 단위 테스트."""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
import pytest_asyncio

from database.schemas import AdDataIn
from database.store import AdBoardStore
from processor.ingest import (
    EXTENSION_DEFAULT_BOARD,
    AssetConflict,
    BoardNotFound,
    ad_from_payload,
    attach_existing,
    ingest_ad,
    media_type_for,
)
from processor.normalizer import MediaItem, NormalizedAd

AD_URL = "https://www.facebook.com/ads/library/?id=42"


@pytest_asyncio.fixture
async def setup(store):
    user = await store.create_user("owner@example.com")
    org_id = await store.get_or_create_default_org(user.id)
    return store, user.id, org_id


def _ad(**overrides) -> NormalizedAd:
    fields = dict(
        ad_id="42",
        source_url=AD_URL,
        brand_name="Acme",
        media_items=[
            MediaItem(url="https://scontent.xx.fbcdn.net/a.jpg"),
            MediaItem(url="https://video.xx.fbcdn.net/b.mp4", type="video"),
        ],
        first_seen_date=datetime(2024, 1, 1),
        last_seen_date=datetime(2024, 1, 10),
    )
    fields.update(overrides)
    return NormalizedAd(**fields)


def test_media_type_for():
    assert media_type_for("https://x/a.jpg") == "image"
    assert media_type_for("https://x/a.MP4") == "video"
    assert media_type_for("https://x/a.jpg", "video") == "video"


@pytest.mark.asyncio
async def test_ingest_creates_default_board_and_files(setup):
    store, user_id, org_id = setup
    result = await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id, tags=["winter", " ", "winter"])

    assert result.status == "created"
    assert result.asset.runtime_days == 9
    assert [(f.type, f.order) for f in result.files] == [("image", 0), ("video", 1)]
    board = await store.get_board(result.board_id, org_id)
    assert (board.name, board.is_default) == ("My Ads", True)
    assert await store.count_tags(org_id) == 1
    audit = await store.latest_audit()
    assert audit.action == "CREATE"
    assert audit.meta["fbAdId"] == "42"


@pytest.mark.asyncio
async def test_ingest_persists_after_commit(setup, session_factory):
    store, user_id, org_id = setup
    result = await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id)
    await store.commit()

    async with session_factory() as session:
        fresh = AdBoardStore(session)
        asset = await fresh.find_asset("42", org_id)
        assert asset.id == result.asset.id
        assert [f.url for f in await fresh.asset_files(asset.id)] == [
            "https://scontent.xx.fbcdn.net/a.jpg",
            "https://video.xx.fbcdn.net/b.mp4",
        ]


@pytest.mark.asyncio
async def test_ingest_reuses_default_board(setup):
    store, user_id, org_id = setup
    first = await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id,
                            default_board=EXTENSION_DEFAULT_BOARD)
    second = await ingest_ad(store, _ad(ad_id="43"), user_id=user_id, org_id=org_id,
                             default_board=EXTENSION_DEFAULT_BOARD)
    assert first.board_id == second.board_id
    assert await store.board_asset_count(first.board_id) == 2


@pytest.mark.asyncio
async def test_ingest_rejects_foreign_board(setup):
    store, user_id, org_id = setup
    other = await store.create_user("other@example.com")
    foreign = await store.create_board(await store.get_or_create_default_org(other.id), "Theirs")
    with pytest.raises(BoardNotFound):
        await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id, board_id=foreign.id)


@pytest.mark.asyncio
async def test_attach_existing_conflict_modes(setup):
    store, user_id, org_id = setup
    asset = (await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id)).asset

    with pytest.raises(AssetConflict) as exc:
        await attach_existing(store, asset, None, org_id=org_id, conflict_on_duplicate=True)
    assert exc.value.error == "Ad already exists"

    result = await attach_existing(store, asset, None, org_id=org_id, conflict_on_duplicate=False)
    assert result.status == "existing"
    assert result.message == "Asset already exists"


@pytest.mark.asyncio
async def test_attach_existing_links_new_board(setup):
    store, user_id, org_id = setup
    asset = (await ingest_ad(store, _ad(), user_id=user_id, org_id=org_id)).asset
    board = await store.create_board(org_id, "Competitors")

    result = await attach_existing(store, asset, board.id, org_id=org_id, conflict_on_duplicate=True)
    assert result.message == "Ad added to board successfully!"
    assert board.id in await store.asset_board_ids(asset.id)


def test_ad_from_payload():
    payload = AdDataIn.model_validate({
        "fbAdId": "42",
        "brandName": "Acme",
        "mediaUrls": ["https://video.xx.fbcdn.net/b.mp4", ""],
    })
    ad = ad_from_payload(payload, AD_URL, page_id="777")
    assert ad.resolved_by == "extension"
    assert ad.page_id == "777"
    assert [m.type for m in ad.media_items] == ["video"]
