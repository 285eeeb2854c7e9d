"""
服务容器测试
"""

import pytest

from app.core.container import ServiceContainer
from app.services.market import MarketCalculator, MarketScheduler
from conftest import FakeQuoteClient


class TestServiceContainer:
    """服务容器生命周期"""

    def test_access_before_initialize(self):
        container = ServiceContainer(quote_client=FakeQuoteClient())
        with pytest.raises(RuntimeError):
            _ = container.calculator

    @pytest.mark.asyncio
    async def test_initialize_wires_services(self):
        quotes = FakeQuoteClient()
        container = ServiceContainer(quote_client=quotes)
        await container.initialize()

        assert container.quote_client is quotes
        assert isinstance(container.calculator, MarketCalculator)
        assert container.calculator.quote_client is quotes
        assert isinstance(container.scheduler, MarketScheduler)
        assert container.scheduler.calculator is container.calculator

        await container.cleanup()
        assert quotes.closed is True
        with pytest.raises(RuntimeError):
            _ = container.scheduler
