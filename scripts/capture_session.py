"""광고 라이브러리 페이지를 열고 광고 카드 감지 + 저장 버튼 주입을 돌린다.

브라우저 창에서 스크롤하면 새 카드가 디바운스 재스캔으로 잡히고,
"Save to AdBoard" 버튼을 누르면 릴레이를 통해 AdBoard API 로 저장된다.
Ctrl+C 로 종료.

Usage:
    python scripts/capture_session.py "https://www.facebook.com/ads/library/?q=coffee&country=US"
    python scripts/capture_session.py URL --session-token <authjs.session-token 값>
    ADBOARD_API_TOKEN=adb_xxx python scripts/capture_session.py URL
"""

import argparse
import asyncio
import io
import sys
from pathlib import Path

_root = str(Path(__file__).resolve().parent.parent)
sys.path.insert(0, _root)
sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")

from dotenv import load_dotenv  # noqa: E402

load_dotenv(Path(_root) / ".env")

from loguru import logger  # noqa: E402
from playwright.async_api import async_playwright  # noqa: E402

from crawler.device_profiles import DESKTOP  # noqa: E402
from extension.api_client import AdBoardClient  # noqa: E402
from extension.page_watcher import AdLibraryWatcher  # noqa: E402
from extension.relay import BackgroundRelay  # noqa: E402


async def main():
    parser = argparse.ArgumentParser(description="Detect ad cards on a live Ad Library page")
    parser.add_argument("url", help="Ad Library search/result URL")
    parser.add_argument("--session-token", default="", help="AdBoard web session cookie value")
    parser.add_argument("--headless", action="store_true", help="Run without a visible window")
    args = parser.parse_args()

    cookies = {"authjs.session-token": args.session_token} if args.session_token else None
    relay = BackgroundRelay(AdBoardClient(cookies=cookies))
    await relay.startup()

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=args.headless)
        context = await browser.new_context(**DESKTOP.context_options())
        page = await context.new_page()
        await page.goto(args.url, wait_until="domcontentloaded")

        watcher = AdLibraryWatcher(page, relay)
        await watcher.start()
        logger.info("[capture] {} ad cards on first scan, scroll to load more", len(watcher.cards))

        try:
            while not page.is_closed():
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            watcher.stop()
            logger.info("[capture] {} ad cards seen in total", len(watcher.cards))
            await browser.close()
            await relay.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
