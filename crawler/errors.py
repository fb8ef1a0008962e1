"""스크레이퍼 예외 계층.

InvalidAdUrl 만 호출자에게 전파된다. 나머지는 파이프라인 내부에서
로그 후 흡수되어 다음 단계(결국 폴백 합성)로 넘어간다.
"""


class ScraperError(Exception):
    """스크레이퍼 예외 베이스."""


class InvalidAdUrl(ScraperError, ValueError):
    """Facebook 광고 URL 형식이 아님."""

    def __init__(self, url: str, reason: str = "not a Facebook ad URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class UpstreamUnavailable(ScraperError):
    """대상 페이지/API 응답 실패 (네트워크, 비정상 status)."""


class UpstreamBlocked(ScraperError):
    """로그인 월, 에러 페이지, 너무 짧은 HTML 등으로 차단됨."""
