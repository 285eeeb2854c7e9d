"""
行情客户端测试（使用 httpx.MockTransport 模拟 Alpha Vantage）
"""

import asyncio
import json

import httpx
import pytest

from app.services.market.quote_client import AlphaVantageClient, RequestThrottle


def make_client(handler) -> AlphaVantageClient:
    return AlphaVantageClient(
        api_key="test-key",
        base_url="https://quotes.test",
        min_interval=0,
        transport=httpx.MockTransport(handler),
    )


def quote_body(price: str) -> dict:
    return {"Global Quote": {"01. symbol": "AAPL", "05. price": price}}


class TestFetchStockPrice:
    """最新报价"""

    @pytest.mark.asyncio
    async def test_parses_price_and_sends_query(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=quote_body("189.9100"))

        client = make_client(handler)
        try:
            price = await client.fetch_stock_price("AAPL")
        finally:
            await client.close()

        assert price == pytest.approx(189.91)
        assert len(seen) == 1
        request = seen[0]
        assert request.url.path == "/query"
        assert request.url.params["function"] == "GLOBAL_QUOTE"
        assert request.url.params["symbol"] == "AAPL"
        assert request.url.params["apikey"] == "test-key"

    @pytest.mark.asyncio
    async def test_rate_limit_note_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"Note": "API call frequency exceeded"})

        client = make_client(handler)
        assert await client.fetch_stock_price("AAPL") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_quote_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"Global Quote": {}})

        client = make_client(handler)
        assert await client.fetch_stock_price("NOPE") is None
        await client.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["abc", "nan", "inf", "0.0000", "-1.50"])
    async def test_invalid_price_returns_none(self, raw):
        client = make_client(lambda request: httpx.Response(200, json=quote_body(raw)))
        assert await client.fetch_stock_price("AAPL") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_status_returns_none(self):
        client = make_client(lambda request: httpx.Response(503, text="unavailable"))
        assert await client.fetch_stock_price("AAPL") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body_returns_none(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        assert await client.fetch_stock_price("AAPL") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        assert await client.fetch_stock_price("AAPL") is None
        await client.close()


class TestFetchDailyHistory:
    """日线历史"""

    SERIES = {
        "Time Series (Daily)": {
            "2024-01-10": {
                "1. open": "184.35",
                "2. high": "186.40",
                "3. low": "183.92",
                "4. close": "186.19",
                "5. volume": "46792908",
            },
            "2024-01-08": {
                "1. open": "182.09",
                "2. high": "185.60",
                "3. low": "181.50",
                "4. close": "185.56",
                "5. volume": "59144470",
            },
            "2024-01-09": {
                "1. open": "183.92",
                "2. high": "185.15",
                "3. low": "182.73",
                "4. close": "185.14",
                "5. volume": "42841809",
            },
        }
    }

    @pytest.mark.asyncio
    async def test_sorted_ascending_and_limited(self):
        def handler(request):
            assert request.url.params["function"] == "TIME_SERIES_DAILY"
            return httpx.Response(200, content=json.dumps(self.SERIES))

        client = make_client(handler)
        bars = await client.fetch_daily_history("AAPL", limit=2)
        await client.close()

        assert [bar["date"] for bar in bars] == ["2024-01-09", "2024-01-10"]
        assert bars[-1]["close"] == pytest.approx(186.19)
        assert bars[-1]["volume"] == 46792908
        assert bars[0]["timestamp"] < bars[1]["timestamp"]

    @pytest.mark.asyncio
    async def test_missing_series_returns_empty(self):
        client = make_client(lambda request: httpx.Response(200, json={"Information": "premium"}))
        assert await client.fetch_daily_history("AAPL") == []
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_bar_returns_empty(self):
        body = {"Time Series (Daily)": {"2024-01-08": {"1. open": "x"}}}
        client = make_client(lambda request: httpx.Response(200, json=body))
        assert await client.fetch_daily_history("AAPL") == []
        await client.close()

    @pytest.mark.asyncio
    async def test_bar_missing_volume_returns_empty(self):
        body = json.loads(json.dumps(self.SERIES))
        del body["Time Series (Daily)"]["2024-01-09"]["5. volume"]
        client = make_client(lambda request: httpx.Response(200, json=body))
        assert await client.fetch_daily_history("AAPL") == []
        await client.close()


class FakeTime:
    """假时钟：sleep 只推进时间"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class TestRequestThrottle:
    """单请求排队节流器"""

    @pytest.mark.asyncio
    async def test_spaces_consecutive_requests(self):
        fake = FakeTime()
        throttle = RequestThrottle(12.0, clock=fake.clock, sleep=fake.sleep)

        for _ in range(3):
            await throttle.acquire()

        assert fake.sleeps == [12.0, 12.0]
        assert fake.now == 24.0

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self):
        fake = FakeTime()
        throttle = RequestThrottle(12.0, clock=fake.clock, sleep=fake.sleep)

        await throttle.acquire()
        fake.now += 30.0
        await throttle.acquire()

        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_waiters_served_in_arrival_order(self):
        fake = FakeTime()
        throttle = RequestThrottle(12.0, clock=fake.clock, sleep=fake.sleep)
        order = []

        async def worker(index: int):
            await throttle.acquire()
            order.append((index, fake.now))

        await asyncio.gather(*(worker(i) for i in range(4)))

        assert [index for index, _ in order] == [0, 1, 2, 3]
        assert [at for _, at in order] == [0.0, 12.0, 24.0, 36.0]

    @pytest.mark.asyncio
    async def test_client_requests_go_through_throttle(self):
        fake = FakeTime()
        client = make_client(lambda request: httpx.Response(200, json=quote_body("10.00")))
        client.throttle = RequestThrottle(12.0, clock=fake.clock, sleep=fake.sleep)

        for symbol in ("AAPL", "MSFT", "GOOGL"):
            assert await client.fetch_stock_price(symbol) == 10.0
        await client.close()

        assert fake.sleeps == [12.0, 12.0]
