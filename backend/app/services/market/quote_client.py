"""
Alpha Vantage 行情客户端

所有请求经过同一个节流器串行发出，两次请求间隔不小于
QUOTE_REQUEST_INTERVAL_SECONDS（免费额度每分钟5次 -> 12秒）。
取价失败时返回 None 并记录原因，由调用方决定如何处理。
"""

import asyncio
import math
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
import pandas as pd
from loguru import logger

from app.core.config import settings
from app.core.metrics import metrics_collector


class RequestThrottle:
    """
    单请求排队节流器

    asyncio.Lock 按到达顺序唤醒等待者，因此排队是先进先出的。
    锁只在等待间隔期间持有，请求本身在锁外执行。
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_request: Optional[float] = None

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_request = self._clock()


class AlphaVantageClient:
    """Alpha Vantage 行情接口客户端"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        min_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.ALPHA_VANTAGE_API_KEY
        self.base_url = (base_url or settings.ALPHA_VANTAGE_BASE_URL).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.QUOTE_TIMEOUT_SECONDS)
        self.throttle = RequestThrottle(
            settings.QUOTE_REQUEST_INTERVAL_SECONDS if min_interval is None else min_interval
        )
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                transport=self._transport,
            )
        return self.client

    async def close(self) -> None:
        if self.client is not None and not self.client.is_closed:
            await self.client.aclose()
        self.client = None

    async def _query(self, function: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """发出一次节流后的查询，失败返回 None"""
        await self.throttle.acquire()
        query = {"function": function, "apikey": self.api_key, **params}
        try:
            client = await self._get_client()
            response = await client.get("/query", params=query)
        except httpx.HTTPError as e:
            logger.error(f"行情接口请求失败: {function} {params} - {e}")
            metrics_collector.record_quote_request(function, "error")
            return None

        if not response.is_success:
            logger.error(
                f"行情接口响应异常: {function} {params} - "
                f"HTTP {response.status_code} {response.reason_phrase}"
            )
            metrics_collector.record_quote_request(function, "http_error")
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.error(f"行情接口返回非JSON内容: {response.text[:200]}")
            metrics_collector.record_quote_request(function, "invalid")
            return None

        if not isinstance(payload, dict):
            logger.error(f"行情接口返回格式异常: {payload!r}")
            metrics_collector.record_quote_request(function, "invalid")
            return None
        return payload

    async def fetch_stock_price(self, symbol: str) -> Optional[float]:
        """获取最新成交价"""
        payload = await self._query("GLOBAL_QUOTE", {"symbol": symbol})
        if payload is None:
            return None

        quote = payload.get("Global Quote")
        raw_price = quote.get("05. price") if isinstance(quote, dict) else None
        if not raw_price:
            # 超额调用时接口返回 {"Note": ...} 或 {"Information": ...}
            logger.error(f"报价格式无效: {symbol} - {payload}")
            metrics_collector.record_quote_request("GLOBAL_QUOTE", "invalid")
            return None

        try:
            price = float(raw_price)
        except (TypeError, ValueError):
            price = math.nan
        if not math.isfinite(price) or price <= 0:
            logger.error(f"报价数值无效: {symbol} - {raw_price!r}")
            metrics_collector.record_quote_request("GLOBAL_QUOTE", "invalid")
            return None

        metrics_collector.record_quote_request("GLOBAL_QUOTE", "success")
        return price

    async def fetch_daily_history(self, symbol: str, limit: int = 100) -> List[Dict[str, Any]]:
        """获取最近 limit 个交易日的日线数据（按日期升序）"""
        payload = await self._query("TIME_SERIES_DAILY", {"symbol": symbol})
        if payload is None:
            return []

        series = payload.get("Time Series (Daily)")
        if not isinstance(series, dict) or not series:
            logger.error(f"日线数据格式无效: {symbol} - {list(payload.keys())}")
            metrics_collector.record_quote_request("TIME_SERIES_DAILY", "invalid")
            return []

        try:
            frame = self._history_frame(series).tail(limit)
            bars = [
                {
                    "date": index.date().isoformat(),
                    "timestamp": int(index.timestamp() * 1000),
                    "open": float(row["open"]),
                    "high": float(row["high"]),
                    "low": float(row["low"]),
                    "close": float(row["close"]),
                    "volume": int(row["volume"]),
                }
                for index, row in frame.iterrows()
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"日线数据解析失败: {symbol} - {e}")
            metrics_collector.record_quote_request("TIME_SERIES_DAILY", "invalid")
            return []

        metrics_collector.record_quote_request("TIME_SERIES_DAILY", "success")
        return bars

    @staticmethod
    def _history_frame(series: Dict[str, Dict[str, str]]) -> pd.DataFrame:
        frame = pd.DataFrame.from_dict(series, orient="index")
        frame = frame.rename(
            columns={
                "1. open": "open",
                "2. high": "high",
                "3. low": "low",
                "4. close": "close",
                "5. volume": "volume",
            }
        )
        frame = frame[["open", "high", "low", "close", "volume"]].astype(float)
        if frame.isna().any().any():
            raise ValueError("日线数据存在缺失字段")
        frame.index = pd.to_datetime(frame.index)
        return frame.sort_index()
