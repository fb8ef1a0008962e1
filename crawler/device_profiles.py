"""PC / 모바일 요청 프로파일 (HTTP 헤더 + 브라우저 컨텍스트)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DeviceProfile:
    name: str
    device_type: str  # "pc" | "mobile"
    viewport_width: int
    viewport_height: int
    user_agent: str
    is_mobile: bool
    has_touch: bool
    device_scale_factor: float

    def http_headers(self) -> dict[str, str]:
        """HTML 수집용 요청 헤더."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
        }

    def context_options(self) -> dict:
        """Playwright new_context() 인자."""
        return {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "user_agent": self.user_agent,
            "is_mobile": self.is_mobile,
            "has_touch": self.has_touch,
            "device_scale_factor": self.device_scale_factor,
            "locale": "en-US",
        }


DESKTOP = DeviceProfile(
    name="Desktop Chrome",
    device_type="pc",
    viewport_width=1920,
    viewport_height=1080,
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    is_mobile=False,
    has_touch=False,
    device_scale_factor=1.0,
)

MOBILE = DeviceProfile(
    name="iPhone 15 Pro",
    device_type="mobile",
    viewport_width=393,
    viewport_height=852,
    user_agent=(
        "Mozilla/5.0 (iPhone; CPU iPhone OS 18_0 like Mac OS X) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/18.0 Mobile/15E148 Safari/604.1"
    ),
    is_mobile=True,
    has_touch=True,
    device_scale_factor=3.0,
)

# 수집 시도 순서: 데스크톱 → 모바일 1회 재시도
FETCH_PROFILES: tuple[DeviceProfile, ...] = (DESKTOP, MOBILE)
