"""
API依赖注入和共享函数
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session
from app.models.user_models import User
from app.services.auth_service import AuthService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """数据库会话依赖"""
    async for session in get_async_session():
        yield session


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_auth_service(db: AsyncSession = Depends(get_db_session)) -> AuthService:
    return AuthService(db)


async def get_optional_user(
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    """当前登录用户，未登录返回 None"""
    return await auth_service.get_user_for_token(token)


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """当前登录用户，未登录返回 401"""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user
