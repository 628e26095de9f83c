"""
业务异常定义与全局异常处理器
"""

import logging
from typing import Optional, Dict

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message
        self.error_code = error_code or "BUSINESS_ERROR"
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def __str__(self):
        return self.message


class AuthenticationError(BusinessException):
    """未登录或令牌无效"""

    def __init__(self, message: str = "Authentication required", error_code: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code or "UNAUTHENTICATED",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(BusinessException):
    """权限不足"""

    def __init__(self, message: str = "Forbidden", error_code: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code or "FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN
        )


class NotFoundError(BusinessException):
    """资源不存在"""

    def __init__(self, message: str = "Not found", error_code: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code or "NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND
        )


class ConflictError(BusinessException):
    """资源冲突，如重复添加成员"""

    def __init__(self, message: str = "Conflict", error_code: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code or "CONFLICT",
            status_code=status.HTTP_409_CONFLICT
        )


class ValidationError(BusinessException):
    """业务层参数校验失败"""

    def __init__(self, message: str = "Validation failed", error_code: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=error_code or "VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class RateLimitExceeded(BusinessException):
    """请求过于频繁"""

    def __init__(self, retry_after: int, headers: Optional[Dict[str, str]] = None):
        all_headers = dict(headers or {})
        all_headers["Retry-After"] = str(retry_after)
        super().__init__(
            message="Too many requests. Please try again later.",
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers=all_headers
        )
        self.retry_after = retry_after


def _error_body(message: str, error_code: str, **extra) -> dict:
    body = {"success": False, "error": message, "errorCode": error_code}
    body.update(extra)
    return body


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常处理"""
    if exc.status_code >= 500:
        logger.error(f"业务异常 {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"业务异常 {request.method} {request.url.path}: [{exc.error_code}] {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.error_code),
        headers=exc.headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败处理"""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            _error_body("Invalid request data", "VALIDATION_ERROR", details=details)
        )
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTP异常处理"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None)
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常处理，不向调用方暴露内部信息"""
    logger.exception(f"数据库异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", "INTERNAL_ERROR")
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """未捕获异常处理"""
    logger.exception(f"未处理异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", "INTERNAL_ERROR")
    )
