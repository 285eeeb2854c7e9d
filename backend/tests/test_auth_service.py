"""
认证服务测试
"""

from datetime import timedelta

import pytest
from hypothesis import given, settings as hypothesis_settings
from hypothesis import strategies as st

from app.core.error_handler import AuthenticationError, ValidationError
from app.services.auth_service import AuthService, hash_password, verify_password
from conftest import MutableClock, utc


class TestPasswordHashing:
    """scrypt 密码哈希"""

    def test_format_is_hash_dot_salt(self):
        stored = hash_password("password123")
        hashed, salt = stored.split(".")
        assert len(hashed) == 128  # 64 字节
        assert len(salt) == 64  # 32 字节
        int(hashed, 16)
        int(salt, 16)

    def test_salt_is_random(self):
        assert hash_password("password123") != hash_password("password123")

    def test_verify(self):
        stored = hash_password("password123")
        assert verify_password("password123", stored)
        assert not verify_password("password124", stored)

    @pytest.mark.parametrize("stored", ["", "nodot", ".salt", "zz.salt", "abcd."])
    def test_malformed_hash_never_matches(self, stored):
        assert not verify_password("password123", stored)

    @given(password=st.text(min_size=1, max_size=32))
    @hypothesis_settings(max_examples=10, deadline=None)
    def test_roundtrip_any_password(self, password):
        assert verify_password(password, hash_password(password))


class TestAuthService:
    """注册、登录、会话"""

    @pytest.mark.asyncio
    async def test_register_opens_session(self, db_session):
        service = AuthService(db_session)
        user, token = await service.register("alice", "password123")

        assert user.id is not None
        assert user.password != "password123"
        assert (await service.get_user_for_token(token)).id == user.id

    @pytest.mark.asyncio
    async def test_register_short_password(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await AuthService(db_session).register("alice", "short")
        assert exc_info.value.message == "Password must be at least 8 characters long"

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, db_session):
        service = AuthService(db_session)
        await service.register("alice", "password123")
        with pytest.raises(ValidationError) as exc_info:
            await service.register("alice", "password456")
        assert exc_info.value.message == "Username already exists"

    @pytest.mark.asyncio
    async def test_login(self, db_session):
        service = AuthService(db_session)
        registered, _ = await service.register("alice", "password123")

        user, token = await service.login("alice", "password123")
        assert user.id == registered.id
        assert token

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username,password", [("alice", "wrongpass1"), ("nobody", "password123")])
    async def test_login_invalid_credentials(self, db_session, username, password):
        service = AuthService(db_session)
        await service.register("alice", "password123")

        with pytest.raises(AuthenticationError) as exc_info:
            await service.login(username, password)
        assert exc_info.value.message == "Invalid credentials"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_invalidates_token(self, db_session):
        service = AuthService(db_session)
        _, token = await service.register("alice", "password123")

        await service.logout(token)
        assert await service.get_user_for_token(token) is None

    @pytest.mark.asyncio
    async def test_session_expires(self, db_session):
        clock = MutableClock(utc(2024, 1, 8, 12, 0))
        service = AuthService(db_session, clock=clock, session_ttl=timedelta(hours=24))
        _, token = await service.register("alice", "password123")

        clock.now += timedelta(hours=23)
        assert await service.get_user_for_token(token) is not None
        clock.now += timedelta(hours=2)
        assert await service.get_user_for_token(token) is None

    @pytest.mark.asyncio
    async def test_missing_token(self, db_session):
        assert await AuthService(db_session).get_user_for_token(None) is None
        assert await AuthService(db_session).get_user_for_token("unknown") is None
