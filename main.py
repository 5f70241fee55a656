"""
DropX 文件存储 - FastAPI应用主入口
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from dropx.core.config import settings
from dropx.core.exceptions import (
    DropXError,
    dropx_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from dropx.core.logger import setup_logging
from dropx.db.database import init_models
from dropx.api import files, folders, media

setup_logging()
logger = logging.getLogger("dropx")

# 创建FastAPI应用
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="DropX 文件存储后端API",
    docs_url="/docs",
    redoc_url="/redoc"
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)

# 统一错误响应：{"error": "..."}
app.add_exception_handler(DropXError, dropx_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """记录每个请求的方法、路径、状态码与耗时"""
    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# 注册路由
app.include_router(files.router)
app.include_router(folders.router)
app.include_router(media.router)


@app.on_event("startup")
async def startup_event():
    if settings.DEBUG:
        # 开发环境自动建表
        await init_models()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)


@app.get("/")
async def root():
    """根路径"""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "message": "DropX API is running"
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
