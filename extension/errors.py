"""릴레이/클라이언트 예외."""


class RelayError(Exception):
    """릴레이 예외 베이스."""


class TransientTransportError(RelayError):
    """연결 끊김/타임아웃 등 재시도 가능한 전송 오류."""


class AuthExpired(RelayError):
    """인증 필요(401). 세션 캐시를 무효화하고 보드 캐시를 비운다."""
