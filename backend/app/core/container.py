"""
依赖注入容器
管理行情客户端、计算服务和调度服务的生命周期
"""

from typing import Optional

from app.services.market import (
    AlphaVantageClient,
    MarketCalculator,
    MarketScheduler,
    market_calendar,
)


class ServiceContainer:
    """服务容器，管理所有服务组件"""

    def __init__(self, quote_client: Optional[AlphaVantageClient] = None):
        self._quote_client: Optional[AlphaVantageClient] = quote_client
        self._calculator: Optional[MarketCalculator] = None
        self._scheduler: Optional[MarketScheduler] = None
        self._initialized = False

    async def initialize(self):
        """初始化所有服务"""
        if self._initialized:
            return

        if self._quote_client is None:
            self._quote_client = AlphaVantageClient()
        self._calculator = MarketCalculator(self._quote_client, calendar=market_calendar)
        self._scheduler = MarketScheduler(self._calculator, calendar=market_calendar)

        self._initialized = True

    async def cleanup(self):
        """清理所有服务"""
        if self._scheduler:
            self._scheduler.shutdown()
        if self._quote_client:
            await self._quote_client.close()

        self._initialized = False

    @property
    def quote_client(self) -> AlphaVantageClient:
        """获取行情客户端"""
        if not self._initialized:
            raise RuntimeError("服务容器未初始化")
        return self._quote_client

    @property
    def calculator(self) -> MarketCalculator:
        """获取行情计算服务"""
        if not self._initialized:
            raise RuntimeError("服务容器未初始化")
        return self._calculator

    @property
    def scheduler(self) -> MarketScheduler:
        """获取调度服务"""
        if not self._initialized:
            raise RuntimeError("服务容器未初始化")
        return self._scheduler


# 全局服务容器实例
_container: Optional[ServiceContainer] = None


async def get_container() -> ServiceContainer:
    """获取服务容器实例"""
    global _container
    if _container is None:
        _container = ServiceContainer()
        await _container.initialize()
    return _container


async def cleanup_container():
    """清理服务容器"""
    global _container
    if _container:
        await _container.cleanup()
        _container = None


# 依赖注入函数，用于FastAPI的Depends
async def get_quote_client() -> AlphaVantageClient:
    container = await get_container()
    return container.quote_client


async def get_market_scheduler() -> MarketScheduler:
    container = await get_container()
    return container.scheduler
