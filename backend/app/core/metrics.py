"""
Prometheus指标收集模块

HTTP请求、行情接口调用、预测结算与定时计算周期的指标，统一由 /metrics 暴露。
"""

import re
import time

import psutil

from fastapi.responses import Response as FastAPIResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

from app.core.config import settings

# HTTP请求计数器
http_requests_total = Counter(
    "http_requests_total",
    "HTTP请求总数",
    ["method", "endpoint", "status"],
)

# HTTP请求持续时间直方图
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP请求持续时间（秒）",
    ["method", "endpoint"],
)

# 错误计数器
errors_total = Counter(
    "errors_total",
    "错误总数",
    ["error_type", "endpoint"],
)

# 行情接口调用
quote_requests_total = Counter(
    "quote_requests_total",
    "行情接口请求总数",
    ["function", "status"],
)

# 新建预测
predictions_created_total = Counter(
    "predictions_created_total",
    "新建预测总数",
)

# 已结算预测
predictions_resolved_total = Counter(
    "predictions_resolved_total",
    "已计算准确率的预测总数",
)

# 定时计算周期
market_cycles_total = Counter(
    "market_cycles_total",
    "行情计算周期执行次数",
    ["session", "status"],
)

market_cycle_duration_seconds = Histogram(
    "market_cycle_duration_seconds",
    "行情计算周期耗时（秒）",
    ["session"],
)

# 内存使用量
memory_usage_bytes = Gauge(
    "memory_usage_bytes",
    "内存使用量（字节）",
)

app_info = Info(
    "app_info",
    "应用程序信息",
)


class MetricsCollector:
    """指标收集器"""

    def __init__(self):
        app_info.info({"name": settings.APP_NAME, "version": settings.APP_VERSION})

    def record_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """记录HTTP请求指标"""
        clean_endpoint = self._clean_endpoint(endpoint)
        http_requests_total.labels(
            method=method,
            endpoint=clean_endpoint,
            status=str(status_code),
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            endpoint=clean_endpoint,
        ).observe(duration)

    def record_error(self, error_type: str, endpoint: str):
        """记录错误指标"""
        errors_total.labels(
            error_type=error_type,
            endpoint=self._clean_endpoint(endpoint),
        ).inc()

    def record_quote_request(self, function: str, status: str):
        quote_requests_total.labels(function=function, status=status).inc()

    def record_prediction_created(self):
        predictions_created_total.inc()

    def record_predictions_resolved(self, count: int):
        if count > 0:
            predictions_resolved_total.inc(count)

    def record_market_cycle(self, session: str, status: str, duration: float):
        """记录一次定时计算周期"""
        market_cycles_total.labels(session=session, status=status).inc()
        market_cycle_duration_seconds.labels(session=session).observe(duration)

    def update_system_metrics(self):
        """更新系统指标"""
        memory_usage_bytes.set(psutil.Process().memory_info().rss)

    def _clean_endpoint(self, endpoint: str) -> str:
        """清理端点路径，移除动态参数"""
        endpoint = endpoint.split("?")[0]
        endpoint = re.sub(r"/\d+(?=/|$)", "/{id}", endpoint)
        # /stocks/AAPL、/stocks/AAPL/history
        endpoint = re.sub(r"/stocks/[^/]+", "/stocks/{symbol}", endpoint)
        return endpoint

    def get_metrics(self) -> bytes:
        """获取Prometheus格式的指标"""
        self.update_system_metrics()
        return generate_latest()


# 全局指标收集器实例
metrics_collector = MetricsCollector()


class MetricsMiddleware:
    """指标收集中间件"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        method = scope["method"]
        path = scope["path"]

        # 跳过指标端点本身
        if path == "/metrics":
            await self.app(scope, receive, send)
            return

        status_code = 200

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            status_code = 500
            metrics_collector.record_error("internal_error", path)
            raise
        finally:
            duration = time.time() - start_time
            metrics_collector.record_request(method, path, status_code, duration)


async def metrics_endpoint() -> FastAPIResponse:
    """Prometheus指标端点"""
    return FastAPIResponse(
        content=metrics_collector.get_metrics(),
        media_type=CONTENT_TYPE_LATEST,
    )
