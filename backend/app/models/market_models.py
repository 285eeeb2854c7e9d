"""
预测、行情快照与排行榜数据模型
"""

from enum import Enum

from sqlalchemy import (
    Column,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from app.core.database import Base, UTCDateTime, utc_now


class TimeFrame(str, Enum):
    """排行榜时间窗口"""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def _iso(value):
    return value.isoformat() if value else None


class Prediction(Base):
    """用户价格预测表"""

    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(String(10), nullable=False)
    predicted_price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    actual_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    accuracy = Column(Float, nullable=True, comment="100 - 绝对百分比误差")
    prediction_time = Column(UTCDateTime, nullable=False)
    target_time = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_predictions_user_id", "user_id"),
        Index("ix_predictions_symbol", "symbol"),
        Index("ix_predictions_target_time", "target_time"),
    )

    @property
    def is_pending(self) -> bool:
        return self.actual_price is None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "predicted_price": self.predicted_price,
            "actual_price": self.actual_price,
            "accuracy": self.accuracy,
            "prediction_time": _iso(self.prediction_time),
            "target_time": _iso(self.target_time),
            "created_at": _iso(self.created_at),
        }


class StockData(Base):
    """行情快照表（每次拉取报价写入一行）"""

    __tablename__ = "stock_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(10), nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    timestamp = Column(UTCDateTime, nullable=False)

    __table_args__ = (Index("ix_stock_data_symbol_timestamp", "symbol", "timestamp"),)

    def to_dict(self):
        return {
            "id": self.id,
            "symbol": self.symbol,
            "price": self.price,
            "timestamp": _iso(self.timestamp),
        }


class Ranking(Base):
    """排行榜表，每个 (用户, 时间窗口) 一行"""

    __tablename__ = "rankings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(String(10), nullable=True, comment="预留：单只股票视图")
    time_frame = Column(
        SQLEnum(TimeFrame, name="time_frame", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    average_accuracy = Column(Float, nullable=False)
    total_predictions = Column(Integer, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "time_frame", name="uq_rankings_user_time_frame"),
        Index("ix_rankings_time_frame", "time_frame"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "time_frame": self.time_frame.value if self.time_frame else None,
            "average_accuracy": round(self.average_accuracy, 2),
            "total_predictions": self.total_predictions,
            "updated_at": _iso(self.updated_at),
        }
