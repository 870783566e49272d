"""业务异常定义与异常处理注册。"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from vc_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """可直接映射为 JSON 错误响应的业务异常。"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_payload(self.message, **self.extra)


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthenticated."


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class LoginRedirect(Exception):
    """网页请求未认证时，重定向到登录页。"""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(location)


def _default_http_message(status_code: int) -> str:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return Unauthorized.default_message
    if status_code == status.HTTP_403_FORBIDDEN:
        return Forbidden.default_message
    if status_code == status.HTTP_404_NOT_FOUND:
        return NotFound.default_message
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return "Method not allowed"
    return "Request failed"


async def api_error_handler(request: Request, exc: ApiError):
    """业务异常直接输出统一错误结构。"""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def login_redirect_handler(request: Request, exc: LoginRedirect):
    return RedirectResponse(url=exc.location, status_code=status.HTTP_302_FOUND)


async def http_exception_handler(request: Request, exc: HTTPException):
    """将框架协议异常统一包装为标准错误结构。"""
    detail = exc.detail
    if isinstance(detail, str) and detail:
        message = detail
    elif isinstance(detail, dict) and detail.get("message"):
        message = str(detail["message"])
    else:
        message = _default_http_message(exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_payload("Validation error", errors=normalized_errors),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(DEFAULT_ERROR_MESSAGE),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(ApiError)(api_error_handler)
    app.exception_handler(LoginRedirect)(login_redirect_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
