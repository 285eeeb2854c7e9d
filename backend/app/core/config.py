"""
应用程序配置管理
"""

from datetime import time
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用程序设置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # 应用配置
    APP_NAME: str = "Stock Prediction Arena"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # 服务器配置
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 数据存储配置
    DATA_ROOT_PATH: str = "./data"

    # 数据库配置
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/app.db"

    # 行情服务配置（Alpha Vantage）
    ALPHA_VANTAGE_API_KEY: str = "demo"
    ALPHA_VANTAGE_BASE_URL: str = "https://www.alphavantage.co"
    QUOTE_REQUEST_INTERVAL_SECONDS: float = 12.0  # 免费额度：每分钟5次
    QUOTE_TIMEOUT_SECONDS: float = 30.0

    # 交易时段配置
    MARKET_TIMEZONE: str = "America/New_York"
    MARKET_OPEN_TIME: str = "09:30"
    MARKET_CLOSE_TIME: str = "16:00"

    # 调度配置
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_MISFIRE_GRACE_SECONDS: int = 300

    # 会话配置
    SESSION_COOKIE_NAME: str = "sessionId"
    SESSION_TTL_HOURS: int = 24

    # 限流配置
    LOGIN_RATE_LIMIT_ATTEMPTS: int = 5
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    API_RATE_LIMIT_REQUESTS: int = 100
    API_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    # 部署在单层反向代理之后时开启，取代理追加的 X-Forwarded-For 最后一项作为客户端地址
    TRUST_PROXY_HEADERS: bool = False

    # API 配置
    API_PREFIX: str = "/api"
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """将CORS_ORIGINS字符串转换为列表"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def market_open(self) -> time:
        """开盘时刻（交易所本地时间）"""
        return time.fromisoformat(self.MARKET_OPEN_TIME)

    @property
    def market_close(self) -> time:
        """收盘时刻（交易所本地时间）"""
        return time.fromisoformat(self.MARKET_CLOSE_TIME)


settings = Settings()
