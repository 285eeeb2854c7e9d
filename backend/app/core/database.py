"""
数据库配置和连接管理
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from loguru import logger
from sqlalchemy import DateTime
from sqlalchemy.engine import make_url
from sqlalchemy.types import TypeDecorator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy 基础模型类"""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    统一以UTC存储时间

    SQLite 不保存时区信息，读出的是 naive datetime；这里写入前统一转成UTC，
    读出后补上 tzinfo，保证 SQLite 与 PostgreSQL 行为一致。
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"拒绝写入不带时区的时间: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ──────────────────────────── 引擎 ────────────────────────────


def _engine_options(database_url: str) -> Dict[str, Any]:
    """SQLite 不支持连接池参数，PostgreSQL 使用与生产一致的池配置"""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return {}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    """按URL创建异步引擎"""
    return create_async_engine(
        database_url,
        echo=echo,
        future=True,
        **_engine_options(database_url),
    )


async_engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)

# ──────────────────────────── 会话工厂 ────────────────────────────

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """获取异步数据库会话（异步生成器，用于依赖注入）"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


# ──────────────────────────── 初始化 ────────────────────────────


def _register_models() -> None:
    # 导入所有模型以确保它们被注册到 Base.metadata
    from app.models import market_models  # noqa: F401
    from app.models import user_models  # noqa: F401


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """初始化数据库（创建所有表）"""
    _register_models()
    engine = engine or async_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表初始化完成")


async def drop_db(engine: Optional[AsyncEngine] = None) -> None:
    """删除所有表"""
    _register_models()
    engine = engine or async_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("数据库表已全部删除")
