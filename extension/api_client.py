"""원격 AdBoard API 클라이언트 (httpx).

세션 쿠키(NextAuth/Auth.js) 또는 개인 액세스 토큰으로 인증한다.
전송 계층 오류는 TransientTransportError, 그 밖의 httpx 오류(디코딩, 리다이렉트 초과,
잘못된 URL)는 RelayError, 401 은 AuthExpired 로 바꿔 올린다.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from extension.config import extension_settings
from extension.errors import AuthExpired, RelayError, TransientTransportError

SESSION_COOKIE_NAMES = (
    "next-auth.session-token",
    "__Secure-next-auth.session-token",
    "authjs.session-token",
    "__Secure-authjs.session-token",
)

HEALTH_PATH = "/api/health"
BOARDS_PATH = "/api/v1/boards"
SAVE_AD_PATH = "/api/v1/assets/fb"
EXT_SAVE_AD_PATH = "/api/v1/ext/assets/fb"


class AdBoardClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or extension_settings.api_url).rstrip("/")
        self.api_token = (api_token if api_token is not None else extension_settings.api_token).strip()
        self._transport = transport
        self._timeout = httpx.Timeout(timeout or extension_settings.request_timeout_sec)
        self._client = self._new_client(cookies)

    def _new_client(self, cookies=None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            cookies=cookies,
            transport=self._transport,
            timeout=self._timeout,
            headers={"Accept": "application/json"},
        )

    def has_session_cookie(self) -> bool:
        return any(self._client.cookies.get(name) for name in SESSION_COOKIE_NAMES)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_token) or self.has_session_cookie()

    def _auth_headers(self) -> dict[str, str]:
        if self.api_token:
            return {"Authorization": f"Bearer {self.api_token}"}
        return {}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, alternate: bool = False, **kwargs,
    ) -> httpx.Response:
        """alternate=True 면 풀링된 연결 대신 새 연결로 보낸다."""
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            if alternate:
                async with self._new_client(self._client.cookies) as fresh:
                    response = await fresh.request(method, path, headers=headers, **kwargs)
            else:
                response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise TransientTransportError(f"{type(exc).__name__}: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RelayError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 401:
            raise AuthExpired(f"{method} {path} → 401")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RelayError(f"invalid JSON from {response.request.url}") from exc

    async def check_session(self, alternate: bool = False) -> bool:
        """쿠키/토큰이 있고 서버가 authenticated=true 로 확인해주면 True."""
        if not self.has_credentials:
            logger.debug("[relay] no session cookie or token")
            return False
        try:
            response = await self._request("GET", HEALTH_PATH, alternate=alternate)
        except AuthExpired:
            return False
        if not response.is_success:
            return False
        payload = self._json(response)
        return bool(isinstance(payload, dict) and payload.get("authenticated"))

    async def list_boards(self, alternate: bool = False) -> Any:
        """보드 목록 원본 응답 (봉투 형태는 호출자가 정규화)."""
        response = await self._request("GET", BOARDS_PATH, alternate=alternate)
        if not response.is_success:
            raise RelayError(f"boards request failed: {response.status_code}")
        return self._json(response)

    async def save_ad(self, payload: dict, alternate: bool = False) -> dict:
        """토큰이 있으면 확장 전용 엔드포인트, 없으면 세션 엔드포인트로 저장."""
        path = EXT_SAVE_AD_PATH if self.api_token else SAVE_AD_PATH
        response = await self._request("POST", path, json=payload, alternate=alternate)
        data = self._json(response)
        if not response.is_success:
            message = data.get("error") if isinstance(data, dict) else None
            raise RelayError(message or f"save failed: {response.status_code}")
        return data
