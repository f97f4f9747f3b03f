"""Result Cache - 조회 파라미터 지문 기반 결과 캐시

목록 조회 응답을 짧은 TTL로 보관합니다. 만료 외의 무효화는 하지 않습니다.
"""
import json
from typing import Any, Mapping, Optional

from eventvista.core.exceptions import StoreConnectionException, StoreSerializationException
from eventvista.core.logging import logger
from eventvista.services.impl.shared_store import SharedStore
from eventvista.utils.hash_utils import generate_cache_key


class ResultCache:
    """지문 → JSON 결과 캐시"""

    def __init__(self, store: SharedStore, namespace: str = "events", default_ttl: int = 30):
        self.store = store
        self.namespace = namespace
        self.default_ttl = default_ttl

    def key_for(self, params: Mapping[str, Any]) -> str:
        return generate_cache_key(self.namespace, params)

    def get(self, key: str) -> Optional[Any]:
        """캐시 조회 (스토어 장애/손상된 값은 miss로 처리)"""
        try:
            cached = self.store.get(key)
        except StoreConnectionException:
            logger.warning(f"[CACHE] Read skipped, store unavailable: {key}")
            return None

        if cached is None:
            logger.debug(f"[CACHE] Miss: {key}")
            return None

        try:
            value = json.loads(cached)
        except ValueError:
            logger.error(f"[CACHE] Corrupted entry ignored: {key}")
            return None

        logger.debug(f"[CACHE] Hit: {key}")
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """캐시 저장

        Raises:
            StoreSerializationException: JSON으로 직렬화할 수 없는 값
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"[CACHE] Failed to serialize value for {key}: {e}")
            raise StoreSerializationException("serialize", str(e)) from e

        try:
            self.store.set(key, payload, ttl or self.default_ttl)
            return True
        except StoreConnectionException:
            logger.warning(f"[CACHE] Write skipped, store unavailable: {key}")
            return False
