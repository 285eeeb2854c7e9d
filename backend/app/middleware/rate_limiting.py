"""
限流中间件

实现基本的限流策略，防止API滥用；另提供登录接口专用的尝试次数限制
"""

import time
from collections import deque
from typing import Callable, Dict, Iterable, Optional

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1.schemas import StandardResponse
from app.core.config import settings

Clock = Callable[[], float]


class RateLimitConfig:
    """限流配置"""

    def __init__(
        self,
        requests_per_window: Optional[int] = None,
        window_seconds: Optional[int] = None,
        burst_size: int = 20,
        exempt_paths: Iterable[str] = ("/metrics",),
        trust_forwarded: Optional[bool] = None,
    ):
        self.requests_per_window = requests_per_window or settings.API_RATE_LIMIT_REQUESTS
        self.window_seconds = window_seconds or settings.API_RATE_LIMIT_WINDOW_SECONDS
        self.burst_size = burst_size
        self.exempt_paths = tuple(exempt_paths)
        self.trust_forwarded = (
            settings.TRUST_PROXY_HEADERS if trust_forwarded is None else trust_forwarded
        )


class TokenBucket:
    """令牌桶算法实现"""

    def __init__(self, capacity: int, refill_rate: float, clock: Clock = time.monotonic):
        self.capacity = capacity
        self.tokens = capacity
        self.refill_rate = refill_rate  # 每秒补充的令牌数
        self.clock = clock
        self.last_refill = clock()

    def consume(self, tokens: int = 1) -> bool:
        """消费令牌"""
        now = self.clock()

        # 补充令牌
        time_passed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + time_passed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False


class SlidingWindowCounter:
    """滑动窗口计数器"""

    def __init__(self, window_size: int, clock: Clock = time.monotonic):
        self.window_size = window_size  # 窗口大小（秒）
        self.clock = clock
        self.requests = deque()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_size
        while self.requests and self.requests[0] <= cutoff:
            self.requests.popleft()

    def add_request(self) -> int:
        """添加请求并返回当前窗口内的请求数"""
        now = self.clock()
        self.requests.append(now)
        self._evict(now)
        return len(self.requests)

    def count(self) -> int:
        self._evict(self.clock())
        return len(self.requests)

    def reset_after(self) -> int:
        """距离最早一次请求移出窗口的秒数"""
        if not self.requests:
            return 0
        return max(0, int(self.requests[0] + self.window_size - self.clock()) + 1)


def get_client_id(request: Request, trust_forwarded: bool = False) -> str:
    """获取客户端标识

    X-Forwarded-For 的前几项由客户端任意填写，只有最后一项是可信代理追加的，
    因此仅在 trust_forwarded 时取最后一项，否则使用连接的对端地址。
    """
    if trust_forwarded:
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        if hops:
            return hops[-1]
    return getattr(request.client, "host", None) or "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """限流中间件"""

    def __init__(self, app, config: Optional[RateLimitConfig] = None, clock: Clock = time.monotonic):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.clock = clock

        # 存储每个客户端的限流状态
        self.client_buckets: Dict[str, TokenBucket] = {}
        self.client_windows: Dict[str, SlidingWindowCounter] = {}

        self.last_cleanup = clock()
        self.cleanup_interval = 300  # 5分钟清理一次

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.config.exempt_paths):
            return await call_next(request)

        client_id = get_client_id(request, self.config.trust_forwarded)
        self._cleanup_expired_data()

        if not self._check_rate_limit(client_id):
            logger.warning(f"客户端 {client_id} 触发限流")
            window = self.client_windows[client_id]
            return JSONResponse(
                status_code=429,
                content=StandardResponse(
                    success=False,
                    message="Too many requests, please try again later",
                ).model_dump(),
                headers={"Retry-After": str(window.reset_after())},
            )

        response = await call_next(request)
        self._add_rate_limit_headers(response, client_id)
        return response

    def _check_rate_limit(self, client_id: str) -> bool:
        """检查限流"""
        # 令牌桶限制突发请求
        if client_id not in self.client_buckets:
            self.client_buckets[client_id] = TokenBucket(
                capacity=self.config.burst_size,
                refill_rate=self.config.requests_per_window / self.config.window_seconds,
                clock=self.clock,
            )
        if client_id not in self.client_windows:
            self.client_windows[client_id] = SlidingWindowCounter(
                self.config.window_seconds, clock=self.clock
            )

        if not self.client_buckets[client_id].consume():
            return False
        requests = self.client_windows[client_id].add_request()
        return requests <= self.config.requests_per_window

    def _add_rate_limit_headers(self, response: Response, client_id: str):
        window = self.client_windows.get(client_id)
        if window is not None:
            remaining = max(0, self.config.requests_per_window - len(window.requests))
            response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(self.config.requests_per_window)

    def _cleanup_expired_data(self):
        """清理过期数据"""
        now = self.clock()
        if now - self.last_cleanup < self.cleanup_interval:
            return

        expired_clients = [
            client_id
            for client_id, bucket in self.client_buckets.items()
            if now - bucket.last_refill > self.config.window_seconds
        ]
        for client_id in expired_clients:
            del self.client_buckets[client_id]
            self.client_windows.pop(client_id, None)

        self.last_cleanup = now

        if expired_clients:
            logger.info(f"清理了 {len(expired_clients)} 个过期客户端的限流数据")


class LoginRateLimiter:
    """登录尝试次数限制，作为路由依赖使用"""

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Clock = time.monotonic,
        trust_forwarded: Optional[bool] = None,
        cleanup_interval: int = 60,
    ):
        self.max_attempts = max_attempts or settings.LOGIN_RATE_LIMIT_ATTEMPTS
        self.window_seconds = window_seconds or settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
        self.clock = clock
        self.trust_forwarded = (
            settings.TRUST_PROXY_HEADERS if trust_forwarded is None else trust_forwarded
        )
        self.cleanup_interval = cleanup_interval
        self.last_cleanup = clock()
        self.windows: Dict[str, SlidingWindowCounter] = {}

    def reset(self) -> None:
        self.windows.clear()
        self.last_cleanup = self.clock()

    def _cleanup_expired_data(self) -> None:
        """移除窗口内已无尝试记录的客户端"""
        now = self.clock()
        if now - self.last_cleanup < self.cleanup_interval:
            return

        expired_clients = [
            client_id for client_id, window in self.windows.items() if window.count() == 0
        ]
        for client_id in expired_clients:
            del self.windows[client_id]
        self.last_cleanup = now

        if expired_clients:
            logger.info(f"清理了 {len(expired_clients)} 个客户端的登录尝试记录")

    async def __call__(self, request: Request) -> None:
        self._cleanup_expired_data()
        client_id = get_client_id(request, self.trust_forwarded)
        window = self.windows.get(client_id)
        if window is None:
            window = SlidingWindowCounter(self.window_seconds, clock=self.clock)
            self.windows[client_id] = window
        if window.count() >= self.max_attempts:
            logger.warning(f"客户端 {client_id} 登录尝试次数过多")
            raise HTTPException(
                status_code=429,
                detail="Too many login attempts, please try again later",
                headers={"Retry-After": str(window.reset_after())},
            )
        window.add_request()


login_rate_limiter = LoginRateLimiter()


__all__ = [
    "RateLimitMiddleware",
    "RateLimitConfig",
    "TokenBucket",
    "SlidingWindowCounter",
    "LoginRateLimiter",
    "login_rate_limiter",
    "get_client_id",
]
