from fastapi import APIRouter, Depends, status

from app.modules.auth import service
from app.modules.auth.dependencies import get_auth_context
from app.modules.auth.schemas import UnlockRequest, TokenResponse, AuthContext

auth_router = APIRouter()


@auth_router.post("/unlock", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def unlock(data: UnlockRequest):
    """
    Desbloquear funciones restringidas con la contraseña de un rol.

    - Contraseña de administrador: acceso completo
    - Contraseña de encargado: dashboard, POS e inventario
    """
    return service.unlock(data.password)


@auth_router.get("/me", response_model=AuthContext)
def get_me(auth_context: AuthContext = Depends(get_auth_context)):
    """Rol de la sesión actual"""
    return auth_context
