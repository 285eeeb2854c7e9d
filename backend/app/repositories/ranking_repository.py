"""
排行榜数据存储层
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import desc, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.error_handler import StorageError
from app.models.market_models import Prediction, Ranking, TimeFrame
from app.models.user_models import User


@dataclass
class UserAccuracyStats:
    """单个用户在某时间窗口内的准确率统计"""

    user_id: int
    average_accuracy: float
    total_predictions: int


class RankingRepository:
    """排行榜数据仓库"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(Ranking)
        if dialect == "sqlite":
            return sqlite.insert(Ranking)
        raise StorageError(message=f"不支持的数据库方言: {dialect}")

    async def aggregate_user_stats(self, since: datetime) -> List[UserAccuracyStats]:
        """按用户汇总 since 之后创建且已结算的预测"""
        try:
            query = (
                select(
                    Prediction.user_id,
                    func.avg(Prediction.accuracy),
                    func.count(Prediction.id),
                )
                .filter(Prediction.created_at >= since, Prediction.accuracy.is_not(None))
                .group_by(Prediction.user_id)
            )
            result = await self.db.execute(query)
            return [
                UserAccuracyStats(
                    user_id=user_id,
                    average_accuracy=float(avg_accuracy or 0.0),
                    total_predictions=int(count),
                )
                for user_id, avg_accuracy, count in result.all()
            ]
        except SQLAlchemyError as e:
            raise StorageError(message=f"汇总准确率失败: {str(e)}", original_exception=e)

    async def upsert_rankings(
        self, time_frame: TimeFrame, stats: List[UserAccuracyStats], now: datetime
    ) -> int:
        """按 (user_id, time_frame) 写入或更新排名"""
        if not stats:
            return 0
        try:
            for stat in stats:
                statement = self._insert().values(
                    user_id=stat.user_id,
                    time_frame=time_frame,
                    average_accuracy=stat.average_accuracy,
                    total_predictions=stat.total_predictions,
                    updated_at=now,
                )
                statement = statement.on_conflict_do_update(
                    index_elements=[Ranking.user_id, Ranking.time_frame],
                    set_={
                        "average_accuracy": statement.excluded.average_accuracy,
                        "total_predictions": statement.excluded.total_predictions,
                        "updated_at": statement.excluded.updated_at,
                    },
                )
                await self.db.execute(statement)
            await self.db.commit()
            return len(stats)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(
                message=f"更新排行榜失败({time_frame.value}): {str(e)}",
                original_exception=e,
            )

    async def get_leaderboard(
        self, time_frame: TimeFrame, since: datetime
    ) -> List[Tuple[Ranking, str]]:
        """指定时间窗口内更新过的排名，准确率从高到低"""
        try:
            query = (
                select(Ranking, User.username)
                .join(User, User.id == Ranking.user_id)
                .filter(Ranking.time_frame == time_frame, Ranking.updated_at >= since)
                .order_by(
                    desc(Ranking.average_accuracy),
                    desc(Ranking.total_predictions),
                    Ranking.user_id,
                )
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(query)
            return [(ranking, username) for ranking, username in result.all()]
        except SQLAlchemyError as e:
            raise StorageError(message=f"获取排行榜失败: {str(e)}", original_exception=e)
