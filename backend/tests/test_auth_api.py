"""
认证接口测试
"""

from app.core.config import settings


def register(client, username="alice", password="password123"):
    return client.post("/api/register", json={"username": username, "password": password})


class TestRegister:
    """注册接口"""

    def test_register_sets_session_cookie(self, client):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["username"] == "alice"
        assert set(body["data"]) == {"id", "username"}

        set_cookie = response.headers["set-cookie"]
        assert f"{settings.SESSION_COOKIE_NAME}=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()
        assert "Max-Age=86400" in set_cookie

    def test_register_short_password(self, client):
        response = register(client, password="short")
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at least 8 characters long"
        assert response.json()["success"] is False

    def test_register_duplicate(self, client):
        register(client)
        response = register(client)
        assert response.status_code == 400
        assert response.json()["message"] == "Username already exists"

    def test_register_missing_fields(self, client):
        response = client.post("/api/register", json={"username": "alice"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_register_blank_username(self, client):
        response = register(client, username="   ")
        assert response.status_code == 400


class TestLoginLogout:
    """登录、退出与当前用户"""

    def test_current_user_requires_login(self, client):
        response = client.get("/api/user")
        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated"

    def test_login_and_current_user(self, client):
        register(client)
        client.cookies.clear()

        response = client.post("/api/login", json={"username": "alice", "password": "password123"})
        assert response.status_code == 200
        assert response.json()["data"]["username"] == "alice"

        me = client.get("/api/user")
        assert me.status_code == 200
        assert me.json()["data"]["username"] == "alice"

    def test_login_wrong_password(self, client):
        register(client)
        response = client.post("/api/login", json={"username": "alice", "password": "wrongpass1"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_logout_clears_session(self, client):
        register(client)
        token = client.cookies.get(settings.SESSION_COOKIE_NAME)

        response = client.post("/api/logout")
        assert response.status_code == 200
        assert client.get("/api/user").status_code == 401

        # 旧令牌在服务端也已失效
        stale = client.get("/api/user", headers={"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"})
        assert stale.status_code == 401

    def test_logout_without_session(self, client):
        assert client.post("/api/logout").status_code == 200

    def test_login_attempts_are_limited(self, client):
        register(client)
        statuses = [
            client.post("/api/login", json={"username": "alice", "password": "wrongpass1"}).status_code
            for _ in range(6)
        ]
        assert statuses == [401] * 5 + [429]

        blocked = client.post("/api/login", json={"username": "alice", "password": "password123"})
        assert blocked.status_code == 429
        assert "Retry-After" in blocked.headers

    def test_forged_forwarded_for_does_not_reset_limit(self, client):
        register(client)
        statuses = [
            client.post(
                "/api/login",
                json={"username": "alice", "password": "wrongpass1"},
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            ).status_code
            for i in range(6)
        ]
        assert statuses == [401] * 5 + [429]
