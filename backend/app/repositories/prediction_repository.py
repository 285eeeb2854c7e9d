"""
预测与行情快照数据存储层
"""

from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.error_handler import ErrorContext, ErrorSeverity, StorageError
from app.models.market_models import Prediction, StockData


class PredictionRepository:
    """预测数据仓库"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_prediction(
        self,
        user_id: int,
        symbol: str,
        predicted_price: float,
        target_time: datetime,
        prediction_time: datetime,
    ) -> Prediction:
        """创建预测"""
        prediction = Prediction(
            user_id=user_id,
            symbol=symbol,
            predicted_price=predicted_price,
            target_time=target_time,
            prediction_time=prediction_time,
        )
        try:
            self.db.add(prediction)
            await self.db.commit()
            await self.db.refresh(prediction)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(
                message=f"创建预测失败: {str(e)}",
                severity=ErrorSeverity.HIGH,
                context=ErrorContext(user_id=user_id, symbol=symbol),
                original_exception=e,
            )

        logger.info(
            f"预测创建成功: {prediction.id}, 用户: {user_id}, {symbol} -> {predicted_price} @ {target_time.isoformat()}"
        )
        return prediction

    async def get_predictions_by_user(self, user_id: int) -> List[Prediction]:
        """获取用户的全部预测（按创建时间升序）"""
        try:
            query = (
                select(Prediction)
                .filter(Prediction.user_id == user_id)
                .order_by(asc(Prediction.created_at), asc(Prediction.id))
            )
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(
                message=f"获取用户预测失败: {str(e)}",
                context=ErrorContext(user_id=user_id),
                original_exception=e,
            )

    async def get_pending_symbols(self) -> List[str]:
        """所有未结算预测涉及的股票代码（去重、排序）"""
        try:
            query = (
                select(Prediction.symbol)
                .filter(Prediction.actual_price.is_(None))
                .distinct()
                .order_by(Prediction.symbol)
            )
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(message=f"获取待结算股票失败: {str(e)}", original_exception=e)

    async def get_due_predictions(self, now: datetime) -> List[Prediction]:
        """目标时间已到但尚未结算的预测"""
        try:
            query = (
                select(Prediction)
                .filter(Prediction.actual_price.is_(None), Prediction.target_time <= now)
                .order_by(asc(Prediction.target_time), asc(Prediction.id))
            )
            result = await self.db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(message=f"获取到期预测失败: {str(e)}", original_exception=e)

    async def resolve_prediction(self, prediction: Prediction, actual_price: float, accuracy: float) -> None:
        """写入实际价格与准确率（由调用方统一提交）"""
        prediction.actual_price = actual_price
        prediction.accuracy = accuracy
        self.db.add(prediction)

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(message=f"提交失败: {str(e)}", original_exception=e)

    # ──────────────────────────── 行情快照 ────────────────────────────

    async def add_stock_price(self, symbol: str, price: float, timestamp: datetime) -> StockData:
        row = StockData(symbol=symbol, price=price, timestamp=timestamp)
        try:
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
            return row
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(
                message=f"写入行情快照失败: {str(e)}",
                context=ErrorContext(symbol=symbol),
                original_exception=e,
            )

    async def get_latest_price(self, symbol: str) -> Optional[StockData]:
        """最近一次的行情快照"""
        try:
            query = (
                select(StockData)
                .filter(StockData.symbol == symbol)
                .order_by(desc(StockData.timestamp), desc(StockData.id))
                .limit(1)
            )
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(
                message=f"获取最新行情失败: {str(e)}",
                context=ErrorContext(symbol=symbol),
                original_exception=e,
            )
