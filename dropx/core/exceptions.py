"""
业务异常定义与全局异常处理
"""
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DropXError(Exception):
    """业务异常基类，携带HTTP状态码，由全局处理器转换为 {"error": ...} 响应"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DropXError):
    """输入缺失或格式错误"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UnauthorizedError(DropXError):
    """未登录、token无效或用户ID不匹配"""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class NotFoundError(DropXError):
    """节点不存在或不属于当前用户"""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "File not found"


class PayloadTooLargeError(DropXError):
    """上传内容超过大小上限"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "File is too large"

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"File is too large: {size_bytes} bytes exceeds the {limit_bytes} byte limit"
        )


class UnsupportedTypeError(DropXError):
    """不支持的文件类型（仅允许图片与PDF）"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Only images and PDF files are supported"


class UpstreamStorageError(DropXError):
    """媒体存储服务调用失败"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Media storage request failed"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def dropx_exception_handler(request: Request, exc: DropXError) -> JSONResponse:
    """将业务异常转换为统一的错误响应"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """框架抛出的HTTP异常（如404路由不存在）同样使用 {"error": ...} 结构"""
    return error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败统一返回400"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底处理：记录完整堆栈，只向调用方返回通用信息"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
