"""브라우저 확장 대응부 — 인페이지 광고 카드 디텍터 + 백그라운드 캐시/릴레이."""
