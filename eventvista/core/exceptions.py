"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from typing import Any, Optional


# 기본 예외 클래스
class EventVistaException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 유효성 검증 관련 예외
class ValidationException(EventVistaException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"field": field, "reason": reason})
        self.field = field
        self.reason = reason


class InvalidQueryException(ValidationException):
    """유효하지 않은 검색어"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__("query", reason, details)


# 공유 스토어(Redis 등) 관련 예외
class StoreException(EventVistaException):
    """공유 스토어 예외"""
    def __init__(self, message: str, error_code: str = "STORE_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "STORE_ERROR", details)


class StoreConnectionException(StoreException):
    """스토어 연결/명령 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Shared store unavailable: {reason}"
        super().__init__(message, "STORE_CONNECTION_ERROR", details or {"reason": reason})


class StoreSerializationException(StoreException):
    """스토어 직렬화/역직렬화 오류"""
    def __init__(self, operation: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Store {operation} failed: {reason}"
        super().__init__(message, "STORE_SERIALIZATION_ERROR",
                        details or {"operation": operation, "reason": reason})


# 데이터베이스 관련 예외
class DatabaseException(EventVistaException):
    """데이터베이스 관련 예외"""
    def __init__(self, message: str, error_code: str = "DB_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "DB_ERROR", details)


class DatabaseConnectionException(DatabaseException):
    """DB 연결 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Database connection failed: {reason}"
        super().__init__(message, "DB_CONNECTION_ERROR", details)


class DatabaseQueryException(DatabaseException):
    """DB 쿼리 실행 오류"""
    def __init__(self, query: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Database query failed: {reason}"
        super().__init__(message, "DB_QUERY_ERROR",
                        details or {"query": query, "reason": reason})


# 큐 관련 예외
class QueueException(EventVistaException):
    """잡 큐 예외"""
    def __init__(self, message: str, error_code: str = "QUEUE_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "QUEUE_ERROR", details)


class QueuePublishException(QueueException):
    """브로커가 메시지를 거부/유실"""
    def __init__(self, job_id: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to publish job '{job_id}': {reason}"
        super().__init__(message, "QUEUE_PUBLISH_ERROR",
                        details or {"job_id": job_id, "reason": reason})


# 잡 레코드 관련 예외
class JobException(EventVistaException):
    """잡 레코드 예외"""
    def __init__(self, message: str, error_code: str = "JOB_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "JOB_ERROR", details)


class JobNotFoundException(JobException):
    """존재하지 않는 잡"""
    def __init__(self, job_id: str, details: Optional[dict[str, Any]] = None):
        message = f"Job not found: {job_id}"
        super().__init__(message, "JOB_NOT_FOUND", details or {"job_id": job_id})


class InvalidJobTransitionException(JobException):
    """허용되지 않는 상태 전이 (예: 종료 상태 → running)"""
    def __init__(self, job_id: str, target: str, details: Optional[dict[str, Any]] = None):
        message = f"Invalid transition for job '{job_id}' to '{target}'"
        super().__init__(message, "INVALID_JOB_TRANSITION",
                        details or {"job_id": job_id, "target": target})


# 스크래퍼 관련 예외
class ScraperException(EventVistaException):
    """스크래퍼 예외의 기본 클래스"""
    def __init__(self, message: str, error_code: str = "SCRAPER_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "SCRAPER_ERROR", details)


class ScraperUnavailableException(ScraperException):
    """스크래퍼 백엔드 비활성/미구현"""
    def __init__(self, platform: str, details: Optional[dict[str, Any]] = None):
        message = f"Scraper unavailable for platform: {platform}"
        super().__init__(message, "SCRAPER_UNAVAILABLE", details or {"platform": platform})


# 상태 폴링 클라이언트 관련 예외
class StatusPollException(EventVistaException):
    """잡 상태 조회 전송 실패 (네트워크/비정상 응답)"""
    def __init__(self, job_id: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Status poll failed for job '{job_id}': {reason}"
        super().__init__(message, "STATUS_POLL_ERROR",
                        details or {"job_id": job_id, "reason": reason})
