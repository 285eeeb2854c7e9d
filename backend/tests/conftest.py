"""
Pytest配置

提供临时SQLite数据库、假行情客户端以及装配好依赖覆盖的测试应用
"""

import asyncio
from datetime import datetime, time, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import init_db
from app.services.market.market_calendar import MarketCalendar


class FakeQuoteClient:
    """按预设价格返回报价，记录请求的股票代码"""

    def __init__(self, prices: Optional[Dict[str, float]] = None):
        self.prices: Dict[str, float] = dict(prices or {})
        self.history: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[str] = []
        self.closed = False

    async def fetch_stock_price(self, symbol: str) -> Optional[float]:
        self.calls.append(symbol)
        return self.prices.get(symbol)

    async def fetch_daily_history(self, symbol: str, limit: int = 100) -> List[Dict[str, Any]]:
        self.calls.append(symbol)
        return self.history.get(symbol, [])[-limit:]

    async def close(self) -> None:
        self.closed = True


class MutableClock:
    """可手动拨动的UTC时钟"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_engine(tmp_path) -> AsyncEngine:
    # NullPool: 连接不跨事件循环复用（TestClient 在独立线程的循环中运行）
    return create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", poolclass=NullPool)


@pytest.fixture
def calendar() -> MarketCalendar:
    return MarketCalendar("America/New_York", time(9, 30), time(16, 0))


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """每个测试独立的临时SQLite数据库"""
    engine = make_engine(tmp_path)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_quotes() -> FakeQuoteClient:
    return FakeQuoteClient({"AAPL": 190.0, "MSFT": 410.0, "GOOGL": 140.0})


@pytest.fixture
def api_session_factory(tmp_path) -> async_sessionmaker:
    """API 测试使用的数据库（同步创建，供 TestClient 使用）"""
    engine = make_engine(tmp_path)
    asyncio.run(init_db(engine))
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(api_session_factory, fake_quotes, calendar) -> TestClient:
    """装配好依赖覆盖的测试客户端（不触发lifespan，调度器不启动）"""
    from app.api.v1.dependencies import get_db_session
    from app.core.container import get_market_scheduler, get_quote_client
    from app.main import create_application
    from app.middleware.rate_limiting import login_rate_limiter
    from app.services.market import MarketCalculator, MarketScheduler

    app = create_application()
    scheduler = MarketScheduler(
        MarketCalculator(fake_quotes, session_factory=api_session_factory, calendar=calendar),
        calendar=calendar,
    )

    async def override_db_session():
        async with api_session_factory() as session:
            yield session

    async def override_quote_client():
        return fake_quotes

    async def override_scheduler():
        return scheduler

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_quote_client] = override_quote_client
    app.dependency_overrides[get_market_scheduler] = override_scheduler

    login_rate_limiter.reset()
    yield TestClient(app)
    login_rate_limiter.reset()
