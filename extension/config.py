"""확장(디텍터 + 릴레이) 설정."""

from pydantic_settings import BaseSettings


class ExtensionSettings(BaseSettings):
    # 원격 API
    api_url: str = "http://localhost:3000"
    api_token: str = ""
    default_board_id: str = ""
    request_timeout_sec: float = 15.0

    # 캐시 TTL
    session_ttl_sec: float = 60.0
    boards_ttl_sec: float = 300.0

    # 릴레이 재시도
    relay_max_attempts: int = 3
    relay_retry_base_delay_sec: float = 1.0
    alternate_path_timeout_sec: float = 5.0

    # 디텍터
    rescan_debounce_sec: float = 2.0
    min_card_width: int = 300
    min_card_height: int = 200
    notification_ms: int = 3000
    max_tracked_cards: int = 500

    model_config = {"env_prefix": "ADBOARD_"}


extension_settings = ExtensionSettings()
