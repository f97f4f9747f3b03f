"""Mock Scraper

네트워크 없이 결정적인 샘플 이벤트를 생성합니다. 같은 (플랫폼, 검색어, 도시)는
항상 같은 source_id를 만들므로 재전달된 잡도 중복 저장되지 않습니다.
"""
from datetime import timedelta
from typing import List

from eventvista.core.logging import logger, sanitize_for_log
from eventvista.schemas.event_schema import ScrapedEvent
from eventvista.utils.hash_utils import hash_string
from eventvista.utils.time_utils import utcnow

# (제목 템플릿, 유형, 며칠 뒤, 무료 여부, 가격, 기술 스택, 품질 점수)
_TEMPLATES = (
    ("{query} Workshop: Hands-on Session", "workshop", 7, False, 50.0, ["React", "TypeScript"], 0.8),
    ("{query} Meetup Night", "meetup", 14, True, None, ["JavaScript"], 0.7),
    ("{query} Conference", "conference", 21, False, 299.0, ["AI", "ML"], 0.9),
)


def _title_case(text: str) -> str:
    return " ".join(word.capitalize() for word in text.replace("-", " ").split())


class MockEventScraper:
    """결정적 샘플 이벤트 스크래퍼"""

    def __init__(self, platform: str):
        self.platform = platform

    async def scrape(self, query: str, city: str, limit: int) -> List[ScrapedEvent]:
        now = utcnow().replace(microsecond=0)
        city_name = _title_case(city)
        label = _title_case(query)
        events: List[ScrapedEvent] = []

        for index, (title, event_type, days, is_free, price, stack, score) in enumerate(_TEMPLATES[:limit]):
            digest = hash_string(f"{self.platform}|{query.lower()}|{city.lower()}|{index}")[:12]
            events.append(
                ScrapedEvent(
                    title=title.format(query=label),
                    description=f"Mock {event_type} about {query} in {city_name}",
                    event_type=event_type,
                    event_date=now + timedelta(days=days),
                    venue_name=f"{city_name} Tech Hub",
                    city=city_name,
                    is_free=is_free,
                    price_min=price,
                    price_max=price,
                    organizer_name=f"{city_name} {label} Community",
                    tech_stack=list(stack),
                    quality_score=score,
                    external_url=f"https://example.com/{self.platform}/{digest}",
                    source_platform=self.platform,
                    source_id=f"mock-{digest}",
                )
            )

        logger.info(
            f"[SCRAPER:{self.platform}] Generated {len(events)} mock events: "
            f"query='{sanitize_for_log(query)}', city='{city_name}'"
        )
        return events
