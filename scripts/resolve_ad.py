"""광고 URL 하나를 해석해서 NormalizedAd 를 JSON 으로 출력.

API → HTML → 폴백 순서로 시도한다. 잘못된 URL 이면 종료 코드 2.

Usage:
    python scripts/resolve_ad.py "https://www.facebook.com/ads/library/?id=123456789"
    python scripts/resolve_ad.py URL --no-api      # 공식 API 단계 건너뜀
    python scripts/resolve_ad.py URL --payload     # 제출 엔드포인트 형태(camelCase)
"""

import argparse
import asyncio
import io
import json
import sys
from pathlib import Path

_root = str(Path(__file__).resolve().parent.parent)
sys.path.insert(0, _root)
sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")

from dotenv import load_dotenv  # noqa: E402

load_dotenv(Path(_root) / ".env")

from loguru import logger  # noqa: E402

from crawler.ad_page_scraper import AdPageScraperStage  # noqa: E402
from crawler.ad_resolver import AdResolver  # noqa: E402
from crawler.errors import InvalidAdUrl  # noqa: E402
from crawler.meta_library import MetaAdsArchiveStage  # noqa: E402


async def main() -> int:
    parser = argparse.ArgumentParser(description="Resolve a Facebook ad URL into a normalized record")
    parser.add_argument("url", help="Ad Library or Facebook post URL")
    parser.add_argument("--no-api", action="store_true", help="Skip the ads_archive API stage")
    parser.add_argument("--payload", action="store_true", help="Print the submission payload shape")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    stages = [AdPageScraperStage()] if args.no_api else [MetaAdsArchiveStage(), AdPageScraperStage()]
    resolver = AdResolver(stages=stages)

    try:
        ad = await resolver.resolve(args.url)
    except InvalidAdUrl as exc:
        logger.error("invalid ad URL: {}", exc)
        return 2

    data = ad.to_payload() if args.payload else ad.model_dump(mode="json")
    print(json.dumps(data, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
