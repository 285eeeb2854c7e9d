"""
API请求和响应模型定义
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.market.market_calendar import MarketSession


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class StandardResponse(BaseModel):
    """标准响应格式"""

    success: bool = Field(..., description="是否成功")
    message: str = Field(..., description="响应消息")
    data: Optional[Any] = Field(None, description="响应数据")
    timestamp: str = Field(default_factory=_utc_timestamp, description="响应时间")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "操作成功",
                "data": {},
                "timestamp": "2025-01-01T12:00:00+00:00",
            }
        },
    )


class CredentialsRequest(BaseModel):
    """注册/登录请求"""

    username: str = Field(..., min_length=1, max_length=255, description="用户名")
    password: str = Field(..., min_length=1, description="密码")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v


class PredictionCreateRequest(BaseModel):
    """预测提交请求，target_time 与 target_session 至少提供一个"""

    symbol: str = Field(..., min_length=1, max_length=10, description="股票代码")
    predicted_price: float = Field(..., gt=0, description="预测价格")
    target_time: Optional[datetime] = Field(None, description="目标时间（开盘或收盘时刻）")
    target_session: Optional[MarketSession] = Field(
        None, description="目标时段: open 或 close，取下一个交易日"
    )

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode="after")
    def require_target(self) -> "PredictionCreateRequest":
        if self.target_time is None and self.target_session is None:
            raise ValueError("Either target_time or target_session is required")
        return self
