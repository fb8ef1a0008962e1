"""스크레이퍼 전역 설정."""

from pydantic_settings import BaseSettings


class ScraperSettings(BaseSettings):
    # 타임아웃
    request_timeout_sec: float = 20.0
    connect_timeout_sec: float = 8.0

    # HTML 수집 판정
    min_html_length: int = 1_000
    max_headline_length: int = 200
    min_ad_text_length: int = 20
    max_ad_text_length: int = 1_000

    # 재시도 (공식 API)
    max_retries: int = 3
    retry_backoff_ms: int = 800

    # 폴백 합성
    fallback_window_days: int = 30
    placeholder_media_base: str = "https://picsum.photos/seed"

    model_config = {"env_prefix": "SCRAPER_"}


scraper_settings = ScraperSettings()
