"""스크래퍼 인터페이스

플랫폼별 어댑터가 구현해야 하는 계약입니다. 워커는 이 인터페이스에만 의존합니다.
"""
from typing import List, Protocol, runtime_checkable

from eventvista.schemas.event_schema import ScrapedEvent


@runtime_checkable
class EventScraper(Protocol):
    """플랫폼 스크래퍼

    Attributes:
        platform: 플랫폼 식별자 (예: "luma")
    """

    platform: str

    async def scrape(self, query: str, city: str, limit: int) -> List[ScrapedEvent]:
        """검색어/도시로 이벤트 수집

        Raises:
            ScraperException: 수집 실패 (워커가 플랫폼 실패로 기록)
        """
        ...
