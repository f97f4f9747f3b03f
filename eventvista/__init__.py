"""eventvista - 테크 이벤트 검색 잡 오케스트레이션 서비스"""

__version__ = "1.0.0"
