"""SQLAlchemy 예외 → 도메인 예외 변환"""
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError

from eventvista.core.exceptions import (
    DatabaseConnectionException,
    DatabaseException,
    DatabaseQueryException,
)

# 연결 계열 오류: 목록 조회는 빈 페이지로 강등, 잡 생성은 하드 실패
CONNECTION_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def translate_db_error(error: SQLAlchemyError, operation: str) -> DatabaseException:
    """SQLAlchemy 예외를 도메인 예외로 변환 (내부 SQL은 노출하지 않음)"""
    if isinstance(error, CONNECTION_ERRORS):
        return DatabaseConnectionException(
            type(error).__name__,
            details={"operation": operation},
        )
    return DatabaseQueryException(operation, type(error).__name__)
