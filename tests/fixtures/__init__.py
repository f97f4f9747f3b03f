"""테스트 더블 레이어

규칙:
- 외부 호출 없음 (네트워크/브로커/실제 스크래핑 금지)
- 시간은 FakeClock으로만 진행
"""

from .fakes import FakeClock, FakeScraper, scraped_event

__all__ = [
    "FakeClock",
    "FakeScraper",
    "scraped_event",
]
