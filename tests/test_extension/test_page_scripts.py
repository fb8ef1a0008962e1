"""페이지 스크립트(스냅샷/마커/버튼 주입/옵저버)를 실제 Chromium 에서 돌리는 테스트.

네트워크는 전부 차단 — 이미지는 로드되지 않아도 URL 크기(p600x600)로 본문 이미지 판정.
"""

from pathlib import Path
import asyncio
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import pytest
import pytest_asyncio

pytest.importorskip("playwright.async_api")

from playwright.async_api import Error as PlaywrightError  # noqa: E402
from playwright.async_api import async_playwright  # noqa: E402

from extension.card_detector import AdCardDetector  # noqa: E402
from extension.config import ExtensionSettings  # noqa: E402
from extension.page_watcher import AdLibraryWatcher  # noqa: E402

LIBRARY_CARD = """
<div class="ad-card" style="width:600px;height:400px">
  <a target="_blank" href="https://www.facebook.com/acmeoutdoor"><span>Acme Outdoor</span></a>
  <div style="white-space: pre-wrap"><span>Stay warm this winter.<br>Free shipping on every order.</span></div>
  <img src="https://scontent.xx.fbcdn.net/v/t45/p600x600/main.jpg" style="width:300px;height:180px">
  <span>Library ID: 12345</span>
  <div role="button" tabindex="0"><span>See ad details</span></div>
</div>
"""

SPONSORED_CARD = """
<div class="ad-card" style="width:600px;height:400px">
  <strong>Trail Co</strong>
  <span>Sponsored</span>
  <div style="white-space: pre-wrap"><span>New trail shoes are here.<br>Grip for every season.</span></div>
  <img src="https://scontent.xx.fbcdn.net/v/t39/p600x600/shoe.jpg">
  <span>Active</span>
</div>
"""

LATE_CARD = """
<div class="ad-card" style="width:600px;height:400px">
  <strong>Late Brand</strong>
  <span>Library ID: 67890</span>
</div>
"""

PAGE_HTML = "<html><body>" + LIBRARY_CARD + LIBRARY_CARD + SPONSORED_CARD + "</body></html>"

BUTTONS_SCRIPT = """() => Array.from(document.querySelectorAll('[data-adboard-ui="save"]')).map(b => ({
    adId: b.closest('[data-adboard-ad-id]').getAttribute('data-adboard-ad-id'),
    after: b.previousElementSibling ? b.previousElementSibling.textContent.trim() : null,
    last: b.parentElement.lastElementChild === b,
}))"""


class _NoRelay:
    async def handle(self, message):
        raise AssertionError(f"relay should not be used here: {message}")


@pytest_asyncio.fixture
async def page():
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=True)
        except PlaywrightError as exc:
            if "Executable doesn't exist" not in str(exc):
                raise
            pytest.skip("chromium not installed (run: playwright install chromium)")
        context = await browser.new_context(viewport={"width": 1280, "height": 900})
        page = await context.new_page()
        await page.route("**/*", lambda route: route.abort())
        await page.set_content(PAGE_HTML, wait_until="domcontentloaded")
        yield page
        await browser.close()


@pytest.mark.asyncio
async def test_scan_detects_each_ad_once(page):
    detector = AdCardDetector()
    cards = await detector.scan_page(page)

    assert len(cards) == 2
    library, sponsored = cards
    assert library.ad_id == "12345"
    assert library.brand_name == "Acme Outdoor"
    assert library.ad_text == "Stay warm this winter.\nFree shipping on every order."
    assert library.media_urls == ["https://scontent.xx.fbcdn.net/v/t45/p600x600/main.jpg"]

    assert sponsored.signal == "sponsored"
    assert sponsored.ad_id.startswith("sponsored_")
    assert sponsored.brand_name == "Trail Co"
    assert sponsored.ad_text == "New trail shoes are here.\nGrip for every season."

    marked = await page.eval_on_selector_all(
        "[data-adboard-processed]", "els => els.map(e => e.getAttribute('data-adboard-ad-id'))",
    )
    assert marked == ["12345", "12345", sponsored.ad_id]
    assert await page.eval_on_selector_all("[data-adboard-candidate]", "els => els.length") == 0


@pytest.mark.asyncio
async def test_rescan_skips_processed_containers(page):
    detector = AdCardDetector()
    assert len(await detector.scan_page(page)) == 2
    assert await detector.scan_page(page) == []


@pytest.mark.asyncio
async def test_save_buttons_placed_after_details_or_appended(page):
    watcher = AdLibraryWatcher(page, _NoRelay(), settings=ExtensionSettings())
    cards = await watcher.rescan()

    buttons = await page.evaluate(BUTTONS_SCRIPT)
    by_id = {b["adId"]: b for b in buttons}
    assert len(buttons) == 2
    assert by_id["12345"]["after"] == "See ad details"
    assert by_id[cards[1].ad_id]["last"] is True

    # 두 번째 주입은 이미 버튼이 있는 컨테이너를 건너뜀
    await watcher.rescan()
    assert len(await page.evaluate(BUTTONS_SCRIPT)) == 2


@pytest.mark.asyncio
async def test_dom_mutation_triggers_debounced_rescan(page):
    watcher = AdLibraryWatcher(page, _NoRelay(), settings=ExtensionSettings(rescan_debounce_sec=0.05))
    await watcher.start()
    assert "12345" in watcher.cards

    await page.evaluate("(html) => document.body.insertAdjacentHTML('beforeend', html)", LATE_CARD)
    for _ in range(60):
        if "67890" in watcher.cards:
            break
        await asyncio.sleep(0.05)
    await watcher.debouncer.wait_idle()
    watcher.stop()

    assert "67890" in watcher.cards
    assert watcher.cards["67890"].brand_name == "Late Brand"
