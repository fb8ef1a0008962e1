"""Facebook ad asset submission API.

POST /api/v1/assets/fb      web-app session; optional ``adData`` from the extension
POST /api/v1/ext/assets/fb  personal access token; ad is always resolved server-side
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from api.deps import get_resolver, get_session_user, get_token_user
from crawler.ad_resolver import AdResolver
from crawler.ad_url import validate_ad_url
from crawler.errors import InvalidAdUrl
from database import get_store
from database.schemas import AssetOut, CreateAssetRequest, ExtCreateAssetRequest, MediaOut
from database.models import User
from database.store import AdBoardStore
from processor.ingest import (
    EXTENSION_DEFAULT_BOARD,
    SESSION_DEFAULT_BOARD,
    AssetConflict,
    BoardNotFound,
    IngestResult,
    ad_from_payload,
    attach_existing,
    ingest_ad,
)

logger = logging.getLogger("adboard.api")

router = APIRouter(prefix="/api/v1", tags=["assets"])


def _asset_out(result: IngestResult) -> AssetOut:
    asset = result.asset
    return AssetOut(
        id=asset.id,
        fb_ad_id=asset.fb_ad_id,
        fb_page_id=asset.fb_page_id,
        brand_name=asset.brand_name,
        headline=asset.headline,
        cta=asset.cta,
        ad_text=asset.ad_text,
        description=asset.description,
        ad_url=asset.ad_url,
        media=[MediaOut(url=f.url, type=f.type) for f in result.files],
        board_id=result.board_id,
        runtime_days=asset.runtime_days,
        first_seen_date=asset.first_seen_date,
        last_seen_date=asset.last_seen_date,
        status=result.status,
        message=result.message,
    )


def _validated_ad_id(ad_url: str) -> str | None:
    try:
        return validate_ad_url(ad_url).ad_id
    except InvalidAdUrl as exc:
        logger.info("Rejected ad URL %s: %s", ad_url, exc.reason)
        raise HTTPException(status_code=400, detail="Invalid Facebook ad URL")


async def _attach_or_conflict(store: AdBoardStore, asset, board_id: str | None, org_id: str):
    try:
        result = await attach_existing(store, asset, board_id, org_id=org_id, conflict_on_duplicate=True)
    except AssetConflict as exc:
        return JSONResponse(status_code=409, content={"error": exc.error, "details": exc.details})
    except BoardNotFound:
        raise HTTPException(status_code=404, detail="Board not found or access denied")
    await store.commit()
    return _asset_out(result)


@router.post("/assets/fb", response_model=AssetOut)
async def create_fb_asset(
    body: CreateAssetRequest,
    user: User = Depends(get_session_user),
    store: AdBoardStore = Depends(get_store),
    resolver: AdResolver = Depends(get_resolver),
):
    """Save a Facebook ad for the signed-in user's default organization."""
    url_ad_id = _validated_ad_id(body.ad_url)
    org_id = await store.get_or_create_default_org(user.id)

    ad_id = body.ad_data.fb_ad_id if body.ad_data else url_ad_id
    existing = await store.find_asset(ad_id, org_id) if ad_id else None
    if existing:
        return await _attach_or_conflict(store, existing, body.board_id, org_id)

    if body.ad_data:
        ad = ad_from_payload(body.ad_data, body.ad_url, body.page_id)
        source = "extension"
    else:
        ad = await resolver.resolve(body.ad_url)
        source = "api"
        if not ad_id:
            # id only known after resolution
            existing = await store.find_asset(ad.ad_id, org_id)
            if existing:
                return await _attach_or_conflict(store, existing, body.board_id, org_id)

    try:
        result = await ingest_ad(
            store, ad,
            user_id=user.id, org_id=org_id, board_id=body.board_id,
            tags=body.tags, source=source, default_board=SESSION_DEFAULT_BOARD,
        )
    except BoardNotFound:
        raise HTTPException(status_code=404, detail="Board not found or access denied")
    await store.commit()
    return _asset_out(result)


@router.post("/ext/assets/fb", response_model=AssetOut)
async def create_fb_asset_from_extension(
    body: ExtCreateAssetRequest,
    user: User = Depends(get_token_user),
    store: AdBoardStore = Depends(get_store),
    resolver: AdResolver = Depends(get_resolver),
):
    """Save a Facebook ad using a personal access token."""
    url_ad_id = _validated_ad_id(body.ad_url)

    if body.org_id:
        if not await store.has_org_access(user.id, body.org_id):
            raise HTTPException(status_code=403, detail="Access denied to organization")
        org_id = body.org_id
    else:
        org_ids = await store.user_org_ids(user.id)
        if not org_ids:
            raise HTTPException(status_code=400, detail="No organization found")
        org_id = org_ids[0]

    existing = await store.find_asset(url_ad_id, org_id) if url_ad_id else None
    if existing is None:
        ad = await resolver.resolve(body.ad_url)
        existing = await store.find_asset(ad.ad_id, org_id)
    if existing:
        result = await attach_existing(
            store, existing, body.board_id, org_id=org_id, conflict_on_duplicate=False,
        )
        await store.commit()
        return _asset_out(result)

    try:
        result = await ingest_ad(
            store, ad,
            user_id=user.id, org_id=org_id, board_id=body.board_id,
            tags=body.tags, source="extension", default_board=EXTENSION_DEFAULT_BOARD,
        )
    except BoardNotFound:
        raise HTTPException(status_code=404, detail="Board not found or access denied")
    await store.commit()
    return _asset_out(result)
