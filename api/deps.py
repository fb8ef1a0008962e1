"""Authentication and service dependencies for FastAPI.

Two credentials are accepted:
  - the web-app session cookie (NextAuth / Auth.js names), looked up in the sessions table
  - a personal access token sent as ``Authorization: Bearer <token>`` (extension)
"""

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crawler.ad_resolver import AdResolver
from database import get_store
from database.models import User
from database.store import AdBoardStore
from extension.api_client import SESSION_COOKIE_NAMES

load_dotenv()

_bearer_scheme = HTTPBearer(auto_error=False)
_resolver: AdResolver | None = None


def session_token_from(request: Request) -> str | None:
    for name in SESSION_COOKIE_NAMES:
        token = request.cookies.get(name)
        if token:
            return token
    return None


def get_resolver() -> AdResolver:
    """Ad URL resolver dependency (overridden in tests)."""
    global _resolver
    if _resolver is None:
        _resolver = AdResolver()
    return _resolver


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    store: AdBoardStore = Depends(get_store),
) -> User | None:
    """Session cookie first, then bearer token. None when neither is valid."""
    user = await store.get_session_user(session_token_from(request))
    if user is None and credentials:
        user = await store.get_token_user(credentials.credentials)
        await store.commit()
    return user


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user


async def get_session_user(
    request: Request,
    store: AdBoardStore = Depends(get_store),
) -> User:
    """Web-app session only (cookie)."""
    user = await store.get_session_user(session_token_from(request))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user


async def get_token_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    store: AdBoardStore = Depends(get_store),
) -> User:
    """Personal access token only (extension)."""
    user = await store.get_token_user(credentials.credentials if credentials else None)
    await store.commit()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
