"""광고 라이브러리 페이지 감시 — 초기 스캔, DOM 변경 시 디바운스 재스캔, 저장 버튼 주입.

페이지 → 파이썬 브리지는 Playwright expose_binding:
  - adboardDomChanged(): MutationObserver 가 호출 → 디바운서 trigger
  - adboardSave(adId):   저장 버튼 클릭 → CHECK_SESSION → LOAD_BOARDS → SAVE_AD
"""

from __future__ import annotations

from loguru import logger
from playwright.async_api import Page

from extension.card_detector import AdCard, AdCardDetector
from extension.config import ExtensionSettings, extension_settings
from extension.debounce import Debouncer
from extension.relay import CHECK_SESSION, LOAD_BOARDS, SAVE_AD, BackgroundRelay

AD_LIBRARY_AD_URL = "https://www.facebook.com/ads/library/?id={ad_id}"

OBSERVER_SCRIPT = """() => {
    if (window.__adboardObserver) return false;
    const isOurs = (node) => node.nodeType === 1 && node.closest && node.closest('[data-adboard-ui]');
    const observer = new MutationObserver((mutations) => {
        const relevant = mutations.some(m => Array.from(m.addedNodes).some(n => !isOurs(n)));
        if (relevant) window.adboardDomChanged();
    });
    observer.observe(document.body, { childList: true, subtree: true });
    window.__adboardObserver = observer;
    return true;
}"""

INJECT_BUTTONS_SCRIPT = """(adIds) => {
    let injected = 0;
    for (const adId of adIds) {
        const container = document.querySelector('[data-adboard-ad-id="' + adId + '"]');
        if (!container || container.querySelector('[data-adboard-ui="save"]')) continue;

        const button = document.createElement('button');
        button.setAttribute('data-adboard-ui', 'save');
        button.textContent = 'Save to AdBoard';
        button.style.cssText = 'margin:8px;padding:6px 12px;border:0;border-radius:6px;'
            + 'background:#1877f2;color:#fff;font-weight:600;cursor:pointer;z-index:9999;';
        button.addEventListener('click', async (event) => {
            event.preventDefault();
            event.stopPropagation();
            button.disabled = true;
            button.textContent = 'Saving...';
            try {
                const result = await window.adboardSave(adId);
                button.textContent = result && result.success ? 'Saved' : 'Save to AdBoard';
            } finally {
                button.disabled = false;
            }
        });

        const details = Array.from(container.querySelectorAll('div, span, a'))
            .find(el => (el.textContent || '').trim() === 'See ad details');
        const anchor = details ? (details.closest('[role="button"], a') || details) : null;
        if (anchor && anchor.parentElement) {
            anchor.parentElement.insertBefore(button, anchor.nextSibling);
        } else {
            container.appendChild(button);
        }
        injected++;
    }
    return injected;
}"""

TOAST_SCRIPT = """(opts) => {
    const toast = document.createElement('div');
    toast.setAttribute('data-adboard-ui', 'toast');
    toast.textContent = opts.message;
    toast.style.cssText = 'position:fixed;top:20px;right:20px;z-index:2147483647;'
        + 'padding:12px 16px;border-radius:8px;color:#fff;font:14px sans-serif;'
        + 'box-shadow:0 4px 12px rgba(0,0,0,.2);background:'
        + (opts.kind === 'error' ? '#e53935' : '#43a047') + ';';
    document.body.appendChild(toast);
    setTimeout(() => toast.remove(), opts.durationMs);
}"""


class AdLibraryWatcher:
    def __init__(
        self,
        page: Page,
        relay: BackgroundRelay,
        detector: AdCardDetector | None = None,
        settings: ExtensionSettings = extension_settings,
    ):
        self.page = page
        self.relay = relay
        self.settings = settings
        self.detector = detector or AdCardDetector(settings)
        self.cards: dict[str, AdCard] = {}
        self.debouncer = Debouncer(settings.rescan_debounce_sec, self.rescan)

    async def start(self) -> None:
        await self.page.expose_binding("adboardDomChanged", self._on_dom_changed)
        await self.page.expose_binding("adboardSave", self._on_save)
        await self.rescan()
        await self.page.evaluate(OBSERVER_SCRIPT)
        logger.info("[watcher] watching {}", self.page.url)

    def stop(self) -> None:
        self.debouncer.cancel()

    # ── 스캔 ──

    def _on_dom_changed(self, source, *args) -> None:
        self.debouncer.trigger()

    def track(self, cards: list[AdCard]) -> None:
        """최근 카드 우선으로 max_tracked_cards 개까지만 보관 (sponsored ID 는 스캔마다 새로 생김)."""
        for card in cards:
            self.cards.pop(card.ad_id, None)
            self.cards[card.ad_id] = card
        overflow = len(self.cards) - max(1, self.settings.max_tracked_cards)
        for ad_id in list(self.cards)[:max(0, overflow)]:
            del self.cards[ad_id]
        if overflow > 0:
            logger.debug("[watcher] dropped {} oldest tracked cards", overflow)

    async def rescan(self) -> list[AdCard]:
        cards = await self.detector.scan_page(self.page)
        self.track(cards)
        if cards:
            await self.page.evaluate(INJECT_BUTTONS_SCRIPT, [c.ad_id for c in cards])
        return cards

    # ── 저장 ──

    async def _on_save(self, source, ad_id: str) -> dict:
        return await self.save_card(str(ad_id))

    def ad_url_for(self, card: AdCard) -> str:
        return AD_LIBRARY_AD_URL.format(ad_id=card.ad_id)

    def _pick_board(self, boards: list) -> str | None:
        if self.settings.default_board_id:
            return self.settings.default_board_id
        for board in boards:
            if isinstance(board, dict) and board.get("id"):
                return str(board["id"])
        return None

    async def save_card(self, ad_id: str) -> dict:
        card = self.cards.get(ad_id)
        if card is None:
            await self.notify("Ad not found on this page. Try scrolling again.", "error")
            return {"success": False, "error": "unknown ad"}

        session = await self.relay.handle({"type": CHECK_SESSION})
        if not (session.get("success") and session.get("data", {}).get("authenticated")):
            await self.notify("Please log in to AdBoard first.", "error")
            return {"success": False, "error": "login required"}

        boards = await self.relay.handle({"type": LOAD_BOARDS})
        board_id = self._pick_board(boards.get("data") or [])

        result = await self.relay.handle({
            "type": SAVE_AD,
            "data": {
                "adUrl": self.ad_url_for(card),
                "boardId": board_id,
                "tags": [],
                "adData": card.to_ad_data(),
            },
        })
        if result.get("success"):
            brand = result.get("data", {}).get("brandName") or card.brand_name or "ad"
            await self.notify(f"Saved {brand} to AdBoard", "success")
        else:
            await self.notify(f"Save failed: {result.get('error') or 'unknown error'}", "error")
        return result

    async def notify(self, message: str, kind: str = "success") -> None:
        await self.page.evaluate(TOAST_SCRIPT, {
            "message": message,
            "kind": kind,
            "durationMs": self.settings.notification_ms,
        })
