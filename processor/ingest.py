"""NormalizedAd -> 저장 자산(Asset) 적재.

- (fb_ad_id, org_id) 기준 중복 확인
- 요청 보드 또는 기본 보드에 연결 (기본 보드 없으면 생성)
- 태그 find-or-create, 미디어는 순서대로 image/video 로 저장
- 감사 로그 기록
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from database.schemas import AdDataIn
from database.models import Asset, AssetFile
from database.store import AdBoardStore
from processor.normalizer import MediaItem, NormalizedAd

SESSION_DEFAULT_BOARD = ("My Ads", "Default board for saved ads")
EXTENSION_DEFAULT_BOARD = ("Extension Saves", "Ads saved via Chrome extension")


class AssetConflict(Exception):
    """이미 저장된 광고 (409)."""

    def __init__(self, error: str, details: str):
        self.error = error
        self.details = details
        super().__init__(error)


class BoardNotFound(Exception):
    """보드가 없거나 다른 조직 소유 (404)."""


@dataclass
class IngestResult:
    asset: Asset
    board_id: str | None
    files: list[AssetFile] = field(default_factory=list)
    status: str = "created"
    message: str | None = None


def media_type_for(url: str, declared: str | None = None) -> str:
    """선언된 타입 우선, 없으면 URL 로 추정."""
    if declared in ("image", "video"):
        return declared
    lower = url.lower()
    if ".mp4" in lower or "video" in lower:
        return "video"
    return "image"


def ad_from_payload(payload: AdDataIn, ad_url: str, page_id: str | None = None) -> NormalizedAd:
    """확장이 보낸 adData → NormalizedAd."""
    return NormalizedAd(
        ad_id=payload.fb_ad_id,
        source_url=ad_url,
        page_id=page_id,
        brand_name=payload.brand_name,
        headline=payload.headline,
        ad_text=payload.ad_text,
        description=payload.description,
        cta=payload.cta,
        media_items=[
            MediaItem(url=url, type=media_type_for(url), source="extension")
            for url in payload.media_urls if url
        ],
        first_seen_date=payload.first_seen_date,
        last_seen_date=payload.last_seen_date,
        resolved_by="extension",
    )


async def attach_existing(
    store: AdBoardStore,
    asset: Asset,
    board_id: str | None,
    *,
    org_id: str,
    conflict_on_duplicate: bool,
) -> IngestResult:
    """이미 있는 자산 처리.

    conflict_on_duplicate=True (세션 경로): 보드 지정 없음/이미 보드에 있음 → AssetConflict.
    False (확장 경로): 가능하면 보드에 연결하고 status='existing' 반환.
    """
    on_boards = await store.asset_board_ids(asset.id)
    files = await store.asset_files(asset.id)

    if board_id and board_id not in on_boards:
        if await store.get_board(board_id, org_id) is None:
            if conflict_on_duplicate:
                raise BoardNotFound(board_id)
            board_id = None
        else:
            await store.link_board(board_id, asset.id)
            logger.info("[ingest] existing asset {} linked to board {}", asset.id, board_id)
            return IngestResult(
                asset=asset, board_id=board_id, files=files, status="existing",
                message="Ad added to board successfully!",
            )

    if conflict_on_duplicate:
        if board_id:
            raise AssetConflict(
                "This ad is already in this board",
                "This Facebook ad has already been added to this board.",
            )
        raise AssetConflict(
            "Ad already exists",
            "This Facebook ad has already been saved to your organization.",
        )

    return IngestResult(
        asset=asset,
        board_id=board_id or (on_boards[0] if on_boards else None),
        files=files,
        status="existing",
        message="Asset already exists",
    )


async def _resolve_board(
    store: AdBoardStore, org_id: str, board_id: str | None, default_board: tuple[str, str],
) -> str:
    if board_id:
        if await store.get_board(board_id, org_id) is None:
            raise BoardNotFound(board_id)
        return board_id
    board = await store.find_default_board(org_id)
    if board is None:
        name, description = default_board
        board = await store.create_board(org_id, name, description, is_default=True)
        logger.info("[ingest] created default board '{}' for org {}", name, org_id)
    return board.id


async def ingest_ad(
    store: AdBoardStore,
    ad: NormalizedAd,
    *,
    user_id: str,
    org_id: str,
    board_id: str | None = None,
    tags: Iterable[str] = (),
    source: str = "api",
    default_board: tuple[str, str] = SESSION_DEFAULT_BOARD,
) -> IngestResult:
    """새 자산 생성. 중복 확인은 호출자가 find_asset 으로 먼저 한다."""
    target_board_id = await _resolve_board(store, org_id, board_id, default_board)

    asset = await store.create_asset(
        org_id=org_id,
        fb_ad_id=ad.ad_id,
        fb_page_id=ad.page_id,
        ad_url=ad.source_url,
        brand_name=ad.brand_name,
        headline=ad.headline,
        cta=ad.cta,
        ad_text=ad.ad_text,
        description=ad.description,
        first_seen_date=ad.first_seen_date,
        last_seen_date=ad.last_seen_date,
        runtime_days=ad.runtime_days,
        created_by_id=user_id,
    )

    files = [
        await store.add_file(asset.id, item.url, media_type_for(item.url, item.type), order)
        for order, item in enumerate(ad.media_items)
    ]
    await store.link_board(target_board_id, asset.id)

    for name in tags:
        name = name.strip()
        if not name:
            continue
        tag = await store.find_or_create_tag(org_id, name)
        await store.link_tag(asset.id, tag.id)

    await store.log_audit(
        action="CREATE",
        resource="ASSET",
        resource_id=asset.id,
        user_id=user_id,
        org_id=org_id,
        metadata={
            "platform": "facebook",
            "fbAdId": ad.ad_id,
            "source": source,
            "resolvedBy": ad.resolved_by,
        },
    )
    logger.info(
        "[ingest] asset {} created fb_ad_id={} resolved_by={} media={}",
        asset.id, ad.ad_id, ad.resolved_by, len(files),
    )
    return IngestResult(asset=asset, board_id=target_board_id, files=files)
