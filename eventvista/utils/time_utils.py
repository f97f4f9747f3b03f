"""시간 유틸리티"""
import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    """naive UTC 현재 시각 (DB 컬럼과 동일한 표현)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """달력 기준 월 더하기 (말일은 대상 월의 마지막 날로 보정)"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
