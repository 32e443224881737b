import logging
import traceback
from typing import Optional
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from os import getenv

logger = logging.getLogger(__name__)


class AppException(Exception):
    """애플리케이션 커스텀 예외 베이스 클래스"""
    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail or message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """HTTP 상태 코드 반환"""
        return status.HTTP_500_INTERNAL_SERVER_ERROR


class NotAuthenticatedError(AppException):
    """사용자 식별 정보 없음 (401) - 재시도하지 않음"""
    @property
    def status_code(self) -> int:
        return status.HTTP_401_UNAUTHORIZED


class NotFoundError(AppException):
    """리소스를 찾을 수 없음 (404)"""
    @property
    def status_code(self) -> int:
        return status.HTTP_404_NOT_FOUND


class ValidationError(AppException):
    """입력 검증 실패 (400) - 저장소에 쓰기 전에 거부"""
    @property
    def status_code(self) -> int:
        return status.HTTP_400_BAD_REQUEST


class WriteConflictError(AppException):
    """동시 upsert로 인한 제약 조건 충돌 (409)"""
    @property
    def status_code(self) -> int:
        return status.HTTP_409_CONFLICT


class FetchFailedError(AppException):
    """조회 중 일시적인 I/O 실패 (503) - 호출자가 재시도 가능"""
    @property
    def status_code(self) -> int:
        return status.HTTP_503_SERVICE_UNAVAILABLE


class InternalError(AppException):
    """예상치 못한 서버 에러 (500)"""
    pass


def is_development() -> bool:
    """개발 환경인지 확인"""
    env = getenv("ENVIRONMENT", "development").lower()
    return env in ("development", "dev", "local")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """커스텀 애플리케이션 예외 핸들러"""
    response_data = {
        "error": exc.__class__.__name__,
        "message": exc.message,
        "detail": exc.detail,
    }

    # 개발 환경에서만 스택 트레이스 포함
    if is_development() and exc.__traceback__ is not None:
        response_data["traceback"] = "".join(traceback.format_tb(exc.__traceback__))

    headers = None
    if isinstance(exc, NotAuthenticatedError):
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content=response_data,
        headers=headers,
    )


async def sqlalchemy_integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """SQLAlchemy IntegrityError 핸들러 (중복 키, 외래 키 제약 등)"""
    error_message = str(exc.orig) if hasattr(exc, 'orig') else str(exc)

    if "unique" in error_message.lower() or "duplicate" in error_message.lower():
        app_exc = WriteConflictError(
            message="Resource conflict",
            detail=f"Resource already exists: {error_message}"
        )
    else:
        app_exc = WriteConflictError(
            message="Database integrity error",
            detail=error_message
        )

    return await app_exception_handler(request, app_exc)


async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """SQLAlchemy OperationalError 핸들러 (DB 연결 에러 등)"""
    error_message = str(exc.orig) if hasattr(exc, 'orig') else str(exc)

    app_exc = FetchFailedError(
        message="Database operation failed",
        detail=error_message if is_development() else "Database operation failed"
    )

    return await app_exception_handler(request, app_exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """일반 예외 핸들러 (예상치 못한 에러)"""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    app_exc = InternalError(
        message="Internal server error",
        detail=str(exc) if is_development() else "An unexpected error occurred"
    )

    # 개발 환경에서만 원본 예외 정보 포함
    if is_development():
        app_exc.detail = (
            f"{app_exc.detail}\n\nTraceback:\n"
            + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        )

    return await app_exception_handler(request, app_exc)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """요청 본문/쿼리 검증 실패를 ValidationError(400)로 통일"""
    fields = ", ".join(
        ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        for error in exc.errors()
    )
    app_exc = ValidationError(
        message="Invalid request",
        detail=f"Invalid fields: {fields}" if fields else "Invalid request"
    )
    return await app_exception_handler(request, app_exc)
