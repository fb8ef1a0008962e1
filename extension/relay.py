"""백그라운드 릴레이 — 인페이지 디텍터와 원격 API 사이의 메시지 중계 + 캐시.

메시지: {type: PING|CHECK_SESSION|LOAD_BOARDS|SAVE_AD, data?}
응답:   {success: bool, data?, error?}

PING 을 제외한 모든 요청은 startup() 의 프리로드(세션 + 보드)가
끝나기 전까지 "not ready" 로 거절된다. 어떤 실패도 예외로 새지 않고
요청 유형별 빈 데이터를 담은 응답 객체로 돌아간다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from extension.api_client import AdBoardClient
from extension.cache import TTLCache
from extension.config import ExtensionSettings, extension_settings
from extension.errors import AuthExpired, RelayError, TransientTransportError

PING = "PING"
CHECK_SESSION = "CHECK_SESSION"
LOAD_BOARDS = "LOAD_BOARDS"
SAVE_AD = "SAVE_AD"

EMPTY_SHAPES: dict[str, Callable[[], Any]] = {
    CHECK_SESSION: lambda: {"authenticated": False},
    LOAD_BOARDS: list,
    SAVE_AD: dict,
}


def empty_shape(request_type: str) -> Any:
    factory = EMPTY_SHAPES.get(request_type)
    return factory() if factory else None


def normalize_boards(payload: Any) -> list:
    """[...] / {data: [...]} / {boards: [...]} → list. 그 외는 []."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "boards"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


class BackgroundRelay:
    def __init__(
        self,
        client: AdBoardClient,
        settings: ExtensionSettings = extension_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self._sleep = sleep
        self.session: TTLCache[bool] = TTLCache(ttl=settings.session_ttl_sec, empty=lambda: False)
        self.boards: TTLCache[list] = TTLCache(ttl=settings.boards_ttl_sec, empty=list)
        self.ready = False
        self._handlers = {
            CHECK_SESSION: self._handle_check_session,
            LOAD_BOARDS: self._handle_load_boards,
            SAVE_AD: self._handle_save_ad,
        }

    # ── Lifecycle ──

    async def startup(self) -> None:
        """세션 + 보드 프리로드. 성공/실패와 무관하게 끝나면 ready."""
        try:
            session = await self._handle_check_session({})
            if session.get("data", {}).get("authenticated"):
                await self._handle_load_boards({})
            logger.info(
                "[relay] preload done authenticated={} boards={}",
                self.session.value, len(self.boards.value or []),
            )
        finally:
            self.ready = True

    async def shutdown(self) -> None:
        self.ready = False
        self.session.clear()
        self.boards.clear()
        await self.client.aclose()

    # ── Dispatch ──

    def ping(self) -> dict:
        return {"success": True, "data": {"pong": True, "ready": self.ready}}

    async def handle(self, message: dict) -> dict:
        request_type = (message or {}).get("type")
        if request_type == PING:
            return self.ping()
        if not self.ready:
            return {"success": False, "error": "not ready"}
        handler = self._handlers.get(request_type)
        if handler is None:
            logger.warning("[relay] unknown message type: {}", request_type)
            return {"success": False, "error": f"unknown message type: {request_type}"}
        return await handler(message.get("data") or {})

    # ── Handlers ──

    async def _handle_check_session(self, data: dict) -> dict:
        if not self.session.is_stale():
            return {"success": True, "data": {"authenticated": bool(self.session.value)}}

        response = await self._with_retry(CHECK_SESSION, self.client.check_session)
        if not response["success"]:
            self.session.clear()
            return response

        authenticated = bool(response["data"])
        self.session.set(authenticated)
        if not authenticated:
            self.boards.clear()
        return {"success": True, "data": {"authenticated": authenticated}}

    async def _handle_load_boards(self, data: dict) -> dict:
        force = bool(data.get("force"))
        if not force and self.boards.value and not self.boards.is_stale():
            return {"success": True, "data": list(self.boards.value)}

        response = await self._with_retry(LOAD_BOARDS, self.client.list_boards)
        if response["success"]:
            boards = normalize_boards(response["data"])
            self.boards.set(boards)
            return {"success": True, "data": list(boards)}

        if self.boards.value:
            logger.warning("[relay] boards refresh failed, serving stale list: {}", response.get("error"))
            return {"success": True, "data": list(self.boards.value), "stale": True}
        return response

    async def _handle_save_ad(self, data: dict) -> dict:
        if not data.get("adUrl"):
            return {"success": False, "data": empty_shape(SAVE_AD), "error": "adUrl is required"}

        async def _call(alternate: bool = False):
            return await self.client.save_ad(data, alternate=alternate)

        response = await self._with_retry(SAVE_AD, _call)
        if response["success"]:
            logger.info(
                "[relay] saved ad fbAdId={} status={}",
                response["data"].get("fbAdId"), response["data"].get("status", "created"),
            )
        return response

    # ── Retry ──

    def _on_auth_expired(self) -> None:
        self.session.invalidate()
        self.session.value = False
        self.boards.clear()

    async def _with_retry(self, request_type: str, call: Callable[..., Awaitable[Any]]) -> dict:
        """최대 relay_max_attempts 회.

        1회차 전송 오류 → 2회차는 새 연결 경로 + 타임아웃 경쟁.
        이후는 attempt * base_delay 만큼 쉬고 기본 경로로 재시도.
        소진되면 {success: False, data: <빈 형태>}.
        """
        attempts = max(1, self.settings.relay_max_attempts)
        alternate = False
        last_error = "unknown error"

        for attempt in range(1, attempts + 1):
            try:
                if alternate:
                    result = await asyncio.wait_for(
                        call(alternate=True), timeout=self.settings.alternate_path_timeout_sec,
                    )
                else:
                    result = await call(alternate=False)
                return {"success": True, "data": result}
            except AuthExpired as exc:
                logger.warning("[relay] {} auth expired: {}", request_type, exc)
                self._on_auth_expired()
                return {"success": False, "data": empty_shape(request_type), "error": "login required"}
            except (TransientTransportError, asyncio.TimeoutError) as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "[relay] {} transient error attempt {}/{} alternate={}: {}",
                    request_type, attempt, attempts, alternate, last_error,
                )
                if attempt >= attempts:
                    break
                if attempt == 1:
                    alternate = True
                else:
                    alternate = False
                    await self._sleep(attempt * self.settings.relay_retry_base_delay_sec)
            except RelayError as exc:
                last_error = str(exc)
                logger.warning("[relay] {} failed: {}", request_type, last_error)
                break
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.exception("[relay] {} unexpected error: {}", request_type, last_error)
                break

        return {"success": False, "data": empty_shape(request_type), "error": last_error}
