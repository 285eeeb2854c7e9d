"""
认证服务

密码使用 scrypt 加盐哈希，存储格式为 "{hex哈希}.{盐}"；
登录会话为随机令牌，保存在 user_sessions 表，通过 http-only cookie 传递。
"""

import asyncio
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import utc_now
from app.core.error_handler import AuthenticationError, ValidationError
from app.models.user_models import User
from app.repositories.user_repository import UserRepository

MIN_PASSWORD_LENGTH = 8
SCRYPT_KEY_LENGTH = 64
INVALID_CREDENTIALS = "Invalid credentials"


def _scrypt(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=16384,
        r=8,
        p=1,
        dklen=SCRYPT_KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_hex(32)
    return f"{_scrypt(password, salt).hex()}.{salt}"


def verify_password(supplied: str, stored: str) -> bool:
    """常量时间比较；格式异常的哈希一律视为不匹配"""
    hashed, sep, salt = stored.partition(".")
    if not sep or not hashed or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False
    return hmac.compare_digest(expected, _scrypt(supplied, salt))


class AuthService:
    """用户注册、登录与会话管理"""

    def __init__(
        self,
        db_session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        session_ttl: Optional[timedelta] = None,
    ):
        self.users = UserRepository(db_session)
        self.clock = clock
        self.session_ttl = session_ttl or timedelta(hours=settings.SESSION_TTL_HOURS)

    async def _open_session(self, user: User) -> str:
        now = self.clock()
        await self.users.purge_expired_sessions(now)
        token = secrets.token_urlsafe(32)
        await self.users.create_session(user.id, token, now + self.session_ttl)
        return token

    async def register(self, username: str, password: str) -> Tuple[User, str]:
        """注册并直接登录，返回 (用户, 会话令牌)"""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if await self.users.get_by_username(username):
            raise ValidationError("Username already exists")

        password_hash = await asyncio.to_thread(hash_password, password)
        user = await self.users.create_user(username, password_hash)
        return user, await self._open_session(user)

    async def login(self, username: str, password: str) -> Tuple[User, str]:
        user = await self.users.get_by_username(username)
        if user is None:
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not await asyncio.to_thread(verify_password, password, user.password):
            logger.warning(f"登录失败，密码错误: {username}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        logger.info(f"用户登录: {user.id} ({username})")
        return user, await self._open_session(user)

    async def logout(self, token: str) -> None:
        await self.users.delete_session(token)

    async def get_user_for_token(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        return await self.users.get_user_by_session_token(token, self.clock())
