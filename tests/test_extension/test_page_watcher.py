from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import pytest

from extension.card_detector import AdCard
from extension.config import ExtensionSettings
from extension.page_watcher import TOAST_SCRIPT, AdLibraryWatcher
from extension.relay import CHECK_SESSION, LOAD_BOARDS, SAVE_AD


class FakePage:
    url = "https://www.facebook.com/ads/library/?q=coffee"

    def __init__(self):
        self.evaluated = []

    async def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))


class FakeRelay:
    def __init__(self, authenticated=True, boards=None, save=None):
        self.authenticated = authenticated
        self.boards = boards if boards is not None else [{"id": "b1"}, {"id": "b2"}]
        self.save = save or {"success": True, "data": {"brandName": "Acme", "status": "created"}}
        self.messages = []

    async def handle(self, message):
        self.messages.append(message)
        if message["type"] == CHECK_SESSION:
            return {"success": True, "data": {"authenticated": self.authenticated}}
        if message["type"] == LOAD_BOARDS:
            return {"success": True, "data": self.boards}
        return self.save


def _watcher(relay, **settings) -> AdLibraryWatcher:
    watcher = AdLibraryWatcher(FakePage(), relay, settings=ExtensionSettings(**settings))
    watcher.cards["42"] = AdCard(ad_id="42", signal="library_id", key="1", brand_name="Acme")
    return watcher


def _toasts(watcher):
    return [arg for script, arg in watcher.page.evaluated if script == TOAST_SCRIPT]


@pytest.mark.asyncio
async def test_save_card_flow():
    relay = FakeRelay()
    watcher = _watcher(relay)
    result = await watcher.save_card("42")

    assert result["success"] is True
    assert [m["type"] for m in relay.messages] == [CHECK_SESSION, LOAD_BOARDS, SAVE_AD]
    save = relay.messages[-1]["data"]
    assert save["adUrl"] == "https://www.facebook.com/ads/library/?id=42"
    assert save["boardId"] == "b1"
    assert save["adData"]["fbAdId"] == "42"
    assert _toasts(watcher)[-1]["kind"] == "success"


@pytest.mark.asyncio
async def test_configured_default_board_wins():
    relay = FakeRelay()
    watcher = _watcher(relay, default_board_id="b9")
    await watcher.save_card("42")
    assert relay.messages[-1]["data"]["boardId"] == "b9"


@pytest.mark.asyncio
async def test_login_required_stops_before_save():
    relay = FakeRelay(authenticated=False)
    watcher = _watcher(relay)
    result = await watcher.save_card("42")
    assert result == {"success": False, "error": "login required"}
    assert [m["type"] for m in relay.messages] == [CHECK_SESSION]
    assert _toasts(watcher)[-1]["message"] == "Please log in to AdBoard first."


@pytest.mark.asyncio
async def test_failed_save_shows_error_toast():
    relay = FakeRelay(save={"success": False, "data": {}, "error": "Ad already exists"})
    watcher = _watcher(relay)
    await watcher.save_card("42")
    toast = _toasts(watcher)[-1]
    assert toast["kind"] == "error"
    assert "Ad already exists" in toast["message"]


@pytest.mark.asyncio
async def test_unknown_card():
    watcher = _watcher(FakeRelay())
    result = await watcher.save_card("nope")
    assert result["success"] is False


def test_tracked_cards_capped_oldest_first():
    watcher = _watcher(FakeRelay(), max_tracked_cards=3)
    watcher.track([
        AdCard(ad_id=f"sponsored_1_{i}", signal="sponsored", key=str(i)) for i in range(4)
    ])
    assert list(watcher.cards) == ["sponsored_1_1", "sponsored_1_2", "sponsored_1_3"]

    watcher.track([AdCard(ad_id="sponsored_1_1", signal="sponsored", key="9")])
    watcher.track([AdCard(ad_id="77", signal="library_id", key="10")])
    assert list(watcher.cards) == ["sponsored_1_3", "sponsored_1_1", "77"]
    assert watcher.cards["sponsored_1_1"].key == "9"
