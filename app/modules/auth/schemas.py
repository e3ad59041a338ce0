"""
Esquemas de autenticación por contraseña de rol
"""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"        # Acceso completo
    MANAGER = "manager"    # Dashboard, POS, inventario
    CASHIER = "cashier"    # Mostrador sin contraseña: POS y turnos


class UnlockRequest(BaseModel):
    password: str = Field(..., min_length=1, description="Contraseña del rol")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
    expires_in: int = Field(description="Segundos de validez del token")


class AuthContext(BaseModel):
    """
    Contexto explícito de la sesión.

    Se inyecta en cada endpoint que requiere autorización en lugar de
    mantener un rol global mutable.
    """
    role: Role = Role.CASHIER
    seller: Optional[str] = None
    authenticated: bool = False

    def has_role(self, allowed: List[str]) -> bool:
        return self.role.value in allowed
