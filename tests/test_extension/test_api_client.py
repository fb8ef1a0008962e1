from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import httpx
import pytest

from extension.api_client import EXT_SAVE_AD_PATH, SAVE_AD_PATH, AdBoardClient
from extension.errors import AuthExpired, RelayError, TransientTransportError


def _client(handler, **kwargs) -> AdBoardClient:
    kwargs.setdefault("api_token", "")
    return AdBoardClient(
        base_url="http://adboard.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_session_check_without_credentials_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await _client(handler).check_session() is False


@pytest.mark.asyncio
async def test_session_check_with_session_cookie():
    seen = {}

    def handler(request):
        seen["cookie"] = request.headers.get("cookie", "")
        return httpx.Response(200, json={"status": "healthy", "authenticated": True})

    client = _client(handler, cookies={"authjs.session-token": "abc"})
    assert client.has_session_cookie()
    assert await client.check_session() is True
    assert "authjs.session-token=abc" in seen["cookie"]


@pytest.mark.asyncio
async def test_token_uses_extension_endpoint():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"id": "a1", "fbAdId": "1", "status": "created"})

    client = _client(handler, api_token="adb_secret")
    data = await client.save_ad({"adUrl": "https://www.facebook.com/ads/library/?id=1"})
    assert data["status"] == "created"
    assert seen == {"path": EXT_SAVE_AD_PATH, "auth": "Bearer adb_secret"}


@pytest.mark.asyncio
async def test_session_save_uses_session_endpoint_and_surfaces_conflict():
    def handler(request):
        assert request.url.path == SAVE_AD_PATH
        return httpx.Response(409, json={"error": "This ad is already in this board"})

    client = _client(handler, cookies={"next-auth.session-token": "abc"})
    with pytest.raises(RelayError, match="already in this board"):
        await client.save_ad({"adUrl": "https://www.facebook.com/ads/library/?id=1"})


@pytest.mark.asyncio
async def test_401_raises_auth_expired():
    def handler(request):
        return httpx.Response(401, json={"error": "Unauthorized"})

    with pytest.raises(AuthExpired):
        await _client(handler, api_token="adb_x").list_boards()


@pytest.mark.asyncio
async def test_transport_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientTransportError):
        await _client(handler, api_token="adb_x").list_boards(alternate=True)


@pytest.mark.asyncio
async def test_decoding_error_is_relay_error():
    def handler(request):
        raise httpx.DecodingError("bad gzip", request=request)

    with pytest.raises(RelayError) as exc:
        await _client(handler, api_token="adb_x").list_boards()
    assert not isinstance(exc.value, TransientTransportError)
    assert "DecodingError" in str(exc.value)
