"""Board listing/creation API."""

from fastapi import APIRouter, Depends, Query

from api.deps import get_current_user
from database import get_store
from database.models import Board, User
from database.schemas import BoardCreate, BoardOut, BoardsResponse
from database.store import AdBoardStore

router = APIRouter(prefix="/api/v1/boards", tags=["boards"])


async def _board_out(store: AdBoardStore, board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        name=board.name,
        description=board.description,
        is_default=board.is_default,
        asset_count=await store.board_asset_count(board.id),
        created_at=board.created_at,
    )


@router.get("", response_model=BoardsResponse)
async def list_boards(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    store: AdBoardStore = Depends(get_store),
):
    """Boards across every organization the user belongs to, newest first."""
    org_ids = await store.user_org_ids(user.id)
    boards = await store.list_boards(org_ids, offset=offset, limit=limit)
    return BoardsResponse(boards=[await _board_out(store, b) for b in boards])


@router.post("", response_model=BoardOut, status_code=201)
async def create_board(
    body: BoardCreate,
    user: User = Depends(get_current_user),
    store: AdBoardStore = Depends(get_store),
):
    org_id = await store.get_or_create_default_org(user.id)
    board = await store.create_board(org_id, body.name.strip(), body.description)
    await store.commit()
    return await _board_out(store, board)
