"""스크래퍼 레지스트리 - export only + 설정 기반 구성"""
from typing import Dict, Iterable

from eventvista.core.config import Settings

from .base import EventScraper
from .disabled import DisabledEventScraper
from .mock import MockEventScraper

SUPPORTED_PLATFORMS = ("luma", "eventbrite", "meetup")


def build_scrapers(settings: Settings, platforms: Iterable[str] = SUPPORTED_PLATFORMS) -> Dict[str, EventScraper]:
    """플랫폼 → 스크래퍼 매핑 생성 (scraper_backend 설정에 따라)"""
    factory = MockEventScraper if settings.scraper_backend == "mock" else DisabledEventScraper
    return {platform: factory(platform) for platform in platforms}


__all__ = [
    "EventScraper",
    "DisabledEventScraper",
    "MockEventScraper",
    "SUPPORTED_PLATFORMS",
    "build_scrapers",
]
