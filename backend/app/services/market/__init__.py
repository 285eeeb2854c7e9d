"""
行情计算模块

- AlphaVantageClient: 节流的报价接口客户端
- MarketCalendar: 开盘/收盘时刻与交易日推算
- MarketCalculator: 价格快照、准确率结算、排行榜汇总
- MarketScheduler: 开盘/收盘定时触发计算周期
"""

from .market_calculator import MarketCalculator, MarketCycleResult, compute_accuracy
from .market_calendar import MarketCalendar, MarketSession, market_calendar
from .market_scheduler import MarketScheduler
from .quote_client import AlphaVantageClient, RequestThrottle

__all__ = [
    "AlphaVantageClient",
    "RequestThrottle",
    "MarketCalendar",
    "MarketSession",
    "market_calendar",
    "MarketCalculator",
    "MarketCycleResult",
    "compute_accuracy",
    "MarketScheduler",
]
