"""
预测提交服务
"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utc_now
from app.core.error_handler import ErrorContext, ValidationError
from app.core.metrics import metrics_collector
from app.models.market_models import Prediction
from app.repositories.prediction_repository import PredictionRepository
from app.services.market.market_calendar import MarketCalendar, MarketSession, market_calendar
from app.services.market.quote_client import AlphaVantageClient


class PredictionService:
    """预测提交与查询"""

    def __init__(
        self,
        db_session: AsyncSession,
        quote_client: AlphaVantageClient,
        calendar: MarketCalendar = market_calendar,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repo = PredictionRepository(db_session)
        self.quote_client = quote_client
        self.calendar = calendar
        self.clock = clock

    def resolve_target_time(
        self,
        now: datetime,
        target_time: Optional[datetime] = None,
        target_session: Optional[MarketSession] = None,
    ) -> datetime:
        """确定预测目标时间：显式时间需校验，指定时段则取最近的该时段"""
        if target_time is not None:
            return self.calendar.validate_target_time(target_time, now)
        if target_session is not None:
            return self.calendar.next_session_datetime(MarketSession(target_session), now)
        raise ValidationError("Either target_time or target_session is required")

    async def submit_prediction(
        self,
        user_id: int,
        symbol: str,
        predicted_price: float,
        target_time: Optional[datetime] = None,
        target_session: Optional[MarketSession] = None,
    ) -> Prediction:
        """校验并创建预测；股票代码通过实时报价确认有效"""
        now = self.clock()
        resolved_target = self.resolve_target_time(now, target_time, target_session)

        current_price = await self.quote_client.fetch_stock_price(symbol)
        if current_price is None:
            raise ValidationError(
                "Invalid stock symbol",
                context=ErrorContext(user_id=user_id, symbol=symbol),
            )

        prediction = await self.repo.create_prediction(
            user_id=user_id,
            symbol=symbol,
            predicted_price=predicted_price,
            target_time=resolved_target,
            prediction_time=now,
        )
        metrics_collector.record_prediction_created()
        return prediction

    async def list_predictions(self, user_id: int) -> List[Prediction]:
        return await self.repo.get_predictions_by_user(user_id)
