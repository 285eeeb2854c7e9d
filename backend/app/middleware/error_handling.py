"""
错误处理中间件

统一错误处理和日志记录
"""

import time
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1.schemas import StandardResponse
from app.core.error_handler import BaseError
from app.core.metrics import metrics_collector


def error_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=StandardResponse(success=False, message=message, data=data).model_dump(),
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """兜底处理路由未捕获的异常"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except BaseError as exc:
            logger.warning(f"业务错误: {request.method} {request.url.path} - {exc.message}")
            self._record_error(exc.error_type.value, request)
            return error_response(exc.status_code, exc.message)
        except ConnectionError as exc:
            logger.error(f"连接错误: {request.method} {request.url.path} - {exc}")
            self._record_error("connection_error", request)
            return error_response(503, "Service temporarily unavailable")
        except TimeoutError as exc:
            logger.error(f"超时错误: {request.method} {request.url.path} - {exc}")
            self._record_error("timeout_error", request)
            return error_response(504, "Request timed out")
        except Exception as exc:
            logger.opt(exception=exc).error(
                f"未处理的异常: {request.method} {request.url.path} - {type(exc).__name__}: {exc}"
            )
            self._record_error("internal_error", request)
            # 不暴露详细错误信息
            return error_response(500, "Internal server error")

    def _record_error(self, error_type: str, request: Request):
        metrics_collector.record_error(error_type, request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        client = getattr(request.client, "host", "unknown")

        logger.debug(f"请求开始: {request.method} {request.url.path} from {client}")

        try:
            response = await call_next(request)
        except Exception as exc:
            duration = time.perf_counter() - start_time
            logger.error(f"请求失败: {request.method} {request.url.path} - {exc} ({duration:.3f}s)")
            raise

        duration = time.perf_counter() - start_time
        logger.info(
            f"请求完成: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)"
        )
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


__all__ = ["ErrorHandlingMiddleware", "RequestLoggingMiddleware", "error_response"]
