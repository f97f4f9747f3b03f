"""해싱 유틸리티 - 요청 파라미터 지문(fingerprint) 생성"""
import hashlib
import json
from typing import Any, Mapping

FIELD_DELIMITER = "|"


def hash_string(text: str) -> str:
    """
    문자열을 MD5 해시로 변환

    Args:
        text: 해시할 문자열

    Returns:
        MD5 해시 문자열 (32자, 128bit)
    """
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _encode_value(value: Any) -> str:
    # 호출 위치와 무관하게 동일한 표현이 나오도록 고정 포맷으로 직렬화
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)


def generate_fingerprint(params: Mapping[str, Any]) -> str:
    """
    필터 파라미터로 지문 생성

    키를 사전순 정렬 후 `name:json(value)`를 `|`로 이어 해시합니다.
    키 순서는 결과에 영향을 주지 않고, 값이 하나라도 다르면 지문이 달라집니다.

    Args:
        params: 파라미터 이름 → 값

    Returns:
        MD5 해시 문자열
    """
    parts = [f"{name}:{_encode_value(params[name])}" for name in sorted(params)]
    return hash_string(FIELD_DELIMITER.join(parts))


def generate_cache_key(namespace: str, params: Mapping[str, Any]) -> str:
    """
    네임스페이스가 붙은 캐시 키 생성

    Args:
        namespace: 키 접두어 (예: "events")
        params: 요청 파라미터

    Returns:
        Redis 캐시 키
    """
    return f"{namespace}:{generate_fingerprint(params)}"
