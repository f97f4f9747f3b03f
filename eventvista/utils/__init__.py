"""유틸리티 패키지 - export only."""

from .hash_utils import hash_string, generate_fingerprint, generate_cache_key
from .time_utils import utcnow, add_months

__all__ = ["hash_string", "generate_fingerprint", "generate_cache_key", "utcnow", "add_months"]
