"""
行情计算服务

开盘/收盘时刻执行：
1. 为所有未结算预测涉及的股票拉取最新价格并写入快照；
2. 对目标时间已到的预测计算准确率；
3. 按日/周/月/年窗口重新汇总排行榜。
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.database import AsyncSessionLocal, utc_now
from app.core.logging import market_logger as logger
from app.core.metrics import metrics_collector
from app.models.market_models import StockData, TimeFrame
from app.repositories.prediction_repository import PredictionRepository
from app.repositories.ranking_repository import RankingRepository
from app.services.market.market_calendar import MarketCalendar, MarketSession, market_calendar
from app.services.market.quote_client import AlphaVantageClient


def compute_accuracy(actual_price: float, predicted_price: float) -> float:
    """准确率 = 100 - |相对误差| * 100，误差越大分数越低（可为负）"""
    if actual_price == 0:
        raise ValueError("实际价格为0，无法计算准确率")
    return 100 - abs((actual_price - predicted_price) / actual_price * 100)


@dataclass
class MarketCycleResult:
    """一次计算周期的结果"""

    session: str
    started_at: datetime
    prices_written: int = 0
    predictions_resolved: int = 0
    duration_seconds: float = 0.0

    def to_dict(self):
        return {
            "session": self.session,
            "started_at": self.started_at.isoformat(),
            "prices_written": self.prices_written,
            "predictions_resolved": self.predictions_resolved,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class MarketCalculator:
    """行情计算服务"""

    def __init__(
        self,
        quote_client: AlphaVantageClient,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        calendar: MarketCalendar = market_calendar,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.quote_client = quote_client
        self.session_factory = session_factory
        self.calendar = calendar
        self.clock = clock

    async def update_stock_prices(self) -> int:
        """拉取所有待结算股票的最新价格，返回写入的快照数"""
        async with self.session_factory() as db:
            repo = PredictionRepository(db)
            symbols = await repo.get_pending_symbols()
            if not symbols:
                logger.info("没有待结算的预测，跳过价格更新")
                return 0

            logger.info(f"开始更新 {len(symbols)} 只股票价格: {', '.join(symbols)}")
            written = 0
            for symbol in symbols:
                # 逐个请求，由客户端节流器控制频率
                price = await self.quote_client.fetch_stock_price(symbol)
                if price is None:
                    logger.warning(f"获取价格失败，跳过: {symbol}")
                    continue
                await repo.add_stock_price(symbol, price, self.clock())
                written += 1

        logger.info(f"价格更新完成: 成功={written}, 失败={len(symbols) - written}")
        return written

    async def calculate_accuracy(self) -> int:
        """结算到期预测并刷新排行榜，返回结算数量"""
        now = self.clock()
        resolved = 0
        async with self.session_factory() as db:
            repo = PredictionRepository(db)
            due = await repo.get_due_predictions(now)
            latest: Dict[str, Optional[StockData]] = {}

            for prediction in due:
                if prediction.symbol not in latest:
                    latest[prediction.symbol] = await repo.get_latest_price(prediction.symbol)

                snapshot = latest[prediction.symbol]
                # 只用目标时间之后拉取的价格结算，否则保持待结算
                if snapshot is None or snapshot.timestamp < prediction.target_time:
                    continue
                actual_price = snapshot.price
                try:
                    accuracy = compute_accuracy(actual_price, prediction.predicted_price)
                except ValueError as e:
                    logger.warning(f"预测 {prediction.id} 无法结算: {e}")
                    continue

                await repo.resolve_prediction(prediction, actual_price, accuracy)
                resolved += 1

            if resolved:
                await repo.commit()

        metrics_collector.record_predictions_resolved(resolved)
        logger.info(f"准确率计算完成: 到期={len(due)}, 结算={resolved}")

        await self.update_rankings()
        return resolved

    async def update_rankings(self) -> Dict[str, int]:
        """按各时间窗口重新汇总排行榜"""
        now = self.clock()
        updated: Dict[str, int] = {}
        async with self.session_factory() as db:
            repo = RankingRepository(db)
            for time_frame in TimeFrame:
                since = self.calendar.start_of_window(time_frame, now)
                stats = await repo.aggregate_user_stats(since)
                updated[time_frame.value] = await repo.upsert_rankings(time_frame, stats, now)

        logger.info(f"排行榜更新完成: {updated}")
        return updated

    async def run_market_cycle(self, session: MarketSession) -> MarketCycleResult:
        """执行一次完整的计算周期"""
        session = MarketSession(session)
        result = MarketCycleResult(session=session.value, started_at=self.clock())
        start = time.perf_counter()
        logger.info(f"行情计算周期开始: {session.value}")
        try:
            result.prices_written = await self.update_stock_prices()
            result.predictions_resolved = await self.calculate_accuracy()
        except Exception:
            result.duration_seconds = time.perf_counter() - start
            metrics_collector.record_market_cycle(session.value, "failed", result.duration_seconds)
            logger.exception(f"行情计算周期失败: {session.value}")
            raise

        result.duration_seconds = time.perf_counter() - start
        metrics_collector.record_market_cycle(session.value, "completed", result.duration_seconds)
        logger.info(f"行情计算周期完成: {result.to_dict()}")
        return result

