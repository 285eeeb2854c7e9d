"""
用户认证路由
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from loguru import logger

from app.api.v1.dependencies import get_auth_service, get_current_user, get_session_token
from app.api.v1.schemas import CredentialsRequest, StandardResponse
from app.core.config import settings
from app.middleware.rate_limiting import login_rate_limiter
from app.models.user_models import User
from app.services.auth_service import AuthService

router = APIRouter(tags=["用户认证"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


@router.post("/register", response_model=StandardResponse, status_code=201, summary="注册")
async def register(
    request: CredentialsRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """注册新用户并自动登录"""
    user, token = await auth_service.register(request.username, request.password)
    _set_session_cookie(response, token)
    logger.info(f"新用户注册: {user.id} ({user.username})")
    return StandardResponse(success=True, message="Registered", data=user.to_dict())


@router.post(
    "/login",
    response_model=StandardResponse,
    summary="登录",
    dependencies=[Depends(login_rate_limiter)],
)
async def login(
    request: CredentialsRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    user, token = await auth_service.login(request.username, request.password)
    _set_session_cookie(response, token)
    return StandardResponse(success=True, message="Logged in", data=user.to_dict())


@router.post("/logout", response_model=StandardResponse, summary="退出登录")
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    if token:
        await auth_service.logout(token)
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return StandardResponse(success=True, message="Logged out")


@router.get("/user", response_model=StandardResponse, summary="当前用户")
async def current_user(user: User = Depends(get_current_user)):
    return StandardResponse(success=True, message="OK", data=user.to_dict())
