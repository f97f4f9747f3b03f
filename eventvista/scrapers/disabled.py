"""Disabled Scraper

스크래핑을 끈 환경(저비용 배포, 점검 등)에서 주입하는 구현체입니다.
워커는 같은 인터페이스를 기대하므로, 모든 플랫폼이 실패한 시도로 자연스럽게
처리되어 재시도 소진 후 잡이 failed로 종료됩니다.
"""
from typing import List

from eventvista.core.exceptions import ScraperUnavailableException
from eventvista.core.logging import logger, sanitize_for_log
from eventvista.schemas.event_schema import ScrapedEvent


class DisabledEventScraper:
    def __init__(self, platform: str):
        self.platform = platform

    async def scrape(self, query: str, city: str, limit: int) -> List[ScrapedEvent]:
        logger.info(
            f"[SCRAPER:disabled] Skipping {self.platform}: query='{sanitize_for_log(query)}', city='{city}'"
        )
        raise ScraperUnavailableException(self.platform, details={"reason": "scraper_disabled"})
