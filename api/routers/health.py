"""Liveness + session check used by the extension relay."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.deps import get_optional_user
from database.models import User
from database.schemas import HealthOut

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthOut)
async def health(user: User | None = Depends(get_optional_user)):
    return HealthOut(
        status="healthy",
        authenticated=user is not None,
        timestamp=datetime.now(timezone.utc),
    )
