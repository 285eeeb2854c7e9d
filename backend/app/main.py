"""
FastAPI 应用程序入口点
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.api.v1.schemas import StandardResponse
from app.core.config import settings
from app.core.container import cleanup_container, get_container
from app.core.database import init_db
from app.core.error_handler import BaseError
from app.core.logging import setup_logging
from app.core.metrics import MetricsMiddleware, metrics_collector, metrics_endpoint
from app.middleware.error_handling import ErrorHandlingMiddleware, RequestLoggingMiddleware
from app.middleware.rate_limiting import RateLimitConfig, RateLimitMiddleware
from app.middleware.security_headers import SecurityHeadersMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用程序生命周期管理"""
    # 启动时初始化
    setup_logging()
    await init_db()

    container = await get_container()
    if settings.SCHEDULER_ENABLED:
        container.scheduler.start()
    else:
        logger.info("行情调度服务已禁用 (SCHEDULER_ENABLED=false)")

    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} 启动完成 ({settings.ENVIRONMENT})")

    yield

    # 关闭时清理
    await cleanup_container()
    logger.info("应用已关闭")


def _envelope(status_code: int, message: str, data=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=StandardResponse(success=False, message=message, data=data).model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """统一异常响应格式"""

    @app.exception_handler(BaseError)
    async def business_error_handler(request: Request, exc: BaseError):
        if exc.status_code >= 500:
            logger.error(f"业务错误: {request.method} {request.url.path} - {exc.message}")
        else:
            logger.info(f"请求被拒绝: {request.method} {request.url.path} - {exc.message}")
        metrics_collector.record_error(exc.error_type.value, request.url.path)
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        message = errors[0]["msg"] if errors else "Invalid input"
        return _envelope(400, message, data=errors)


def create_application() -> FastAPI:
    """创建 FastAPI 应用程序"""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
        ## 股票预测竞技场 API

        用户对下一个交易日的开盘（9:30）或收盘（16:00）价格进行预测，
        系统在开盘/收盘时拉取实时报价、结算预测准确率，并按日/周/月/年汇总排行榜。

        ### 主要功能

        * **用户认证**: 注册、登录、会话 cookie
        * **预测提交**: 提交与查询个人预测
        * **排行榜**: 按时间窗口查看平均准确率排名
        * **行情查询**: 最新报价与日线历史
        """,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        lifespan=lifespan,
    )

    # 添加中间件（后添加的在外层）
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RateLimitMiddleware, config=RateLimitConfig())
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.get("/metrics", include_in_schema=False)(metrics_endpoint)

    return app


app = create_application()
