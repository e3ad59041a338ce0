"""
Dependencias de autenticación para FastAPI.
"""
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.common.exceptions import InvalidCredentials, PermissionDenied
from app.modules.auth.schemas import AuthContext, Role
from app.modules.auth.utils import verify_token

# Sin token la sesión es de mostrador (cashier)
security = HTTPBearer(auto_error=False)


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
    ) -> AuthContext:
        """
        Construir el contexto de sesión desde el token (si existe).
        """
        if credentials is None:
            return AuthContext()

        payload = verify_token(credentials.credentials)
        role_value = payload.get("role")
        try:
            role = Role(role_value)
        except ValueError:
            raise InvalidCredentials(detail="Token sin rol válido")

        return AuthContext(role=role, authenticated=True)

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if not auth_context.has_role(allowed_roles):
                raise PermissionDenied(
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )
            return auth_context
        return role_checker

    @staticmethod
    def require_admin():
        return AuthDependencies.require_role([Role.ADMIN.value])

    @staticmethod
    def require_manager():
        """Inventario: manager o superior"""
        return AuthDependencies.require_role([Role.ADMIN.value, Role.MANAGER.value])

    @staticmethod
    def require_any_role():
        """Punto de venta: accesible para todos"""
        return AuthDependencies.require_role([r.value for r in Role])


# Instancias de dependencias
get_auth_context = AuthDependencies.get_auth_context
require_admin = AuthDependencies.require_admin
require_manager = AuthDependencies.require_manager
require_any_role = AuthDependencies.require_any_role
