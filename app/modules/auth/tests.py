"""
Tests para autenticación por contraseña de rol
"""

import pytest
from datetime import timedelta

from app.core.config import settings
from app.common.exceptions import InvalidCredentials
from app.modules.auth import service
from app.modules.auth.schemas import Role
from app.modules.auth.utils import create_access_token, verify_token


class TestAuthService:
    """Tests del servicio de desbloqueo"""

    def test_resolve_roles(self):
        assert service.resolve_role(settings.ADMIN_PASSWORD) == Role.ADMIN
        assert service.resolve_role(settings.MANAGER_PASSWORD) == Role.MANAGER

    def test_wrong_password(self):
        with pytest.raises(InvalidCredentials):
            service.resolve_role("adivina")

    def test_unlock_token_carries_role(self):
        token = service.unlock(settings.MANAGER_PASSWORD)
        assert token.role == Role.MANAGER
        assert token.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert verify_token(token.access_token)["role"] == "manager"

    def test_expired_token(self):
        token = create_access_token({"sub": "admin", "role": "admin"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(InvalidCredentials) as exc_info:
            verify_token(token)
        assert "expirada" in exc_info.value.detail


class TestAuthEndpoints:
    """Endpoints de autenticación"""

    def test_unlock_admin(self, client):
        response = client.post("/auth/unlock", json={"password": settings.ADMIN_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "admin"
        assert body["token_type"] == "bearer"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json() == {"role": "admin", "seller": None, "authenticated": True}

    def test_unlock_wrong_password(self, client):
        response = client.post("/auth/unlock", json={"password": "1234"})
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credentials"

    def test_without_token_is_cashier(self, client):
        assert client.get("/auth/me").json()["role"] == "cashier"

    def test_invalid_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer no-es-un-token"})
        assert (response.status_code, response.json()["code"]) == (401, "invalid_credentials")

    def test_token_with_unknown_role(self, client):
        token = create_access_token({"sub": "x", "role": "owner"})
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
