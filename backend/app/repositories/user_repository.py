"""
用户与会话数据存储层
"""

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import delete as sql_delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.error_handler import ConflictError, ErrorContext, ErrorSeverity, StorageError
from app.models.user_models import User, UserSession


class UserRepository:
    """用户数据仓库"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_username(self, username: str) -> Optional[User]:
        try:
            result = await self.db.execute(select(User).filter(User.username == username).limit(1))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(
                message=f"查询用户失败: {str(e)}",
                original_exception=e,
            )

    async def create_user(self, username: str, password_hash: str) -> User:
        """创建用户；用户名冲突时抛出 ConflictError"""
        user = User(username=username, password=password_hash)
        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Username already exists", original_exception=e)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(
                message=f"创建用户失败: {str(e)}",
                severity=ErrorSeverity.HIGH,
                original_exception=e,
            )

        logger.info(f"用户注册成功: {user.id} ({username})")
        return user

    # ──────────────────────────── 会话 ────────────────────────────

    async def create_session(self, user_id: int, token: str, expires_at: datetime) -> UserSession:
        session = UserSession(user_id=user_id, token=token, expires_at=expires_at)
        try:
            self.db.add(session)
            await self.db.commit()
            await self.db.refresh(session)
            return session
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(
                message=f"创建会话失败: {str(e)}",
                context=ErrorContext(user_id=user_id),
                original_exception=e,
            )

    async def get_user_by_session_token(self, token: str, now: datetime) -> Optional[User]:
        """根据未过期的会话令牌查找用户"""
        try:
            query = (
                select(User)
                .join(UserSession, UserSession.user_id == User.id)
                .filter(UserSession.token == token, UserSession.expires_at > now)
                .limit(1)
            )
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(message=f"查询会话失败: {str(e)}", original_exception=e)

    async def delete_session(self, token: str) -> bool:
        try:
            result = await self.db.execute(sql_delete(UserSession).where(UserSession.token == token))
            await self.db.commit()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(message=f"删除会话失败: {str(e)}", original_exception=e)

    async def purge_expired_sessions(self, now: datetime) -> int:
        """清理过期会话"""
        try:
            result = await self.db.execute(
                sql_delete(UserSession).where(UserSession.expires_at <= now)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(message=f"清理过期会话失败: {str(e)}", original_exception=e)

        if result.rowcount:
            logger.info(f"清理了 {result.rowcount} 个过期会话")
        return result.rowcount
