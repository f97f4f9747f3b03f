"""
요청 보안 헬퍼
입력 검증 및 클라이언트 식별
"""

from typing import Mapping, Optional

from eventvista.core.exceptions import InvalidQueryException
from eventvista.core.logging import logger, sanitize_for_log


UNKNOWN_CLIENT = "unknown"


class SecurityValidator:
    """입력 보안 검증"""

    MAX_QUERY_LENGTH = 200

    # 제어 문자 (로그 위조/헤더 주입 방지)
    DANGEROUS_CHARS = ['\0', '\n', '\r', '<', '>']

    @staticmethod
    def validate_query(query: Optional[str]) -> str:
        """검색어 검증

        Args:
            query: 검색어

        Returns:
            앞뒤 공백이 제거된 검색어

        Raises:
            InvalidQueryException: 비어 있거나 허용되지 않는 입력
        """
        if query is None or not isinstance(query, str) or not query.strip():
            raise InvalidQueryException("Query is required")

        cleaned = query.strip()

        if len(cleaned) > SecurityValidator.MAX_QUERY_LENGTH:
            raise InvalidQueryException(
                f"Query must be at most {SecurityValidator.MAX_QUERY_LENGTH} characters"
            )

        for char in SecurityValidator.DANGEROUS_CHARS:
            if char in cleaned:
                logger.warning(f"[SECURITY] Rejected query with forbidden character: {sanitize_for_log(repr(char))}")
                raise InvalidQueryException("Query contains forbidden characters")

        return cleaned


def resolve_client_identity(headers: Mapping[str, str]) -> str:
    """클라이언트 식별자(IP) 추출

    우선순위: X-Forwarded-For 첫 항목 → X-Real-IP → CF-Connecting-IP → "unknown"

    Args:
        headers: 요청 헤더 (대소문자 구분 없는 매핑 권장)

    Returns:
        식별자 문자열
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value and value.strip():
            return value.strip()

    return UNKNOWN_CLIENT
