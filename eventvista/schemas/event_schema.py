"""이벤트 관련 Pydantic 스키마 (Validation Enhanced)"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# "all"은 필터 미적용을 의미 (프론트엔드 드롭다운 기본값)
ANY_VALUE = "all"


class CamelModel(BaseModel):
    """camelCase 직렬화 기본 모델 (응답은 by_alias로 내려감)"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _normalize_choice(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == ANY_VALUE:
        return None
    return text


class SearchFilters(CamelModel):
    """검색/목록 필터"""

    city: Optional[str] = Field(None, max_length=100, description="도시 (대소문자 무시)")
    event_type: Optional[str] = Field(None, max_length=50, description="이벤트 유형")
    price: Optional[str] = Field(None, max_length=10, description="free | paid")
    date: Optional[str] = Field(None, max_length=20, description="today | thisWeek | thisMonth")
    platforms: Optional[List[str]] = Field(None, max_length=10, description="소스 플랫폼 목록")

    @field_validator("city", "event_type", "price", "date", mode="before")
    @classmethod
    def normalize_choice(cls, v: Any) -> Optional[str]:
        return _normalize_choice(v)

    @field_validator("platforms", mode="before")
    @classmethod
    def normalize_platforms(cls, v: Any) -> Optional[List[str]]:
        """콤마 구분 문자열 또는 리스트 허용"""
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple)):
            raise ValueError("platforms must be a list or comma separated string")
        cleaned = [str(p).strip().lower() for p in v if str(p).strip()]
        return cleaned or None

    def fingerprint_params(self) -> Dict[str, Any]:
        """지문 계산용 파라미터 (미지정 값도 키로 포함)"""
        return {
            "city": self.city,
            "eventType": self.event_type,
            "price": self.price,
            "date": self.date,
            "platforms": self.platforms,
        }


class SearchRequest(SearchFilters):
    """검색 시작 요청"""

    query: Optional[str] = Field(None, max_length=500, description="자유 텍스트 검색어")


class EventOut(CamelModel):
    """이벤트 응답"""

    id: int
    title: str
    description: Optional[str] = None
    event_type: str
    status: str
    event_date: datetime
    event_end_date: Optional[datetime] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    city: str
    country: str
    is_online: bool
    is_free: bool
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    currency: str
    organizer_name: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    quality_score: float
    external_url: Optional[str] = None
    image_url: Optional[str] = None
    source_platform: str
    source_id: str
    scraped_at: datetime

    @field_validator("tech_stack", mode="before")
    @classmethod
    def coerce_tech_stack(cls, v: Any) -> List[str]:
        return list(v) if v else []


class ScrapedEvent(BaseModel):
    """스크래퍼가 반환하는 이벤트 (저장 전)"""

    title: str = Field(..., min_length=1, max_length=500)
    event_date: datetime
    source_platform: str = Field(..., min_length=1, max_length=50)
    source_id: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    event_type: str = "meetup"
    event_end_date: Optional[datetime] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    city: Optional[str] = None
    country: str = "US"
    is_online: bool = False
    is_free: bool = False
    price_min: Optional[float] = Field(None, ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    organizer_name: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    quality_score: float = Field(0.0, ge=0)
    external_url: Optional[str] = None
    image_url: Optional[str] = None


class PaginationMeta(CamelModel):
    """페이지네이션 메타데이터"""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)


class ListingResponse(CamelModel):
    """목록 조회 응답"""

    events: List[Dict[str, Any]]
    pagination: PaginationMeta
    # 검색어가 있는 목록 요청이 DB에서 바로 응답된 경우 "database"
    source: Optional[str] = None
