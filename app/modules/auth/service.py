import hmac
import logging
from datetime import timedelta

from app.core.config import settings
from app.common.exceptions import InvalidCredentials
from app.modules.auth.schemas import Role, TokenResponse
from app.modules.auth.utils import create_access_token

logger = logging.getLogger(__name__)


def resolve_role(password: str) -> Role:
    """Mapea la contraseña estática al rol correspondiente."""
    if hmac.compare_digest(password, settings.ADMIN_PASSWORD):
        return Role.ADMIN
    if hmac.compare_digest(password, settings.MANAGER_PASSWORD):
        return Role.MANAGER
    raise InvalidCredentials()


def unlock(password: str) -> TokenResponse:
    """Desbloquear la sesión con la contraseña de un rol."""
    try:
        role = resolve_role(password)
    except InvalidCredentials:
        logger.warning("Failed unlock attempt")
        raise

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token({"sub": role.value, "role": role.value}, expires_delta=expires)
    logger.info(f"Session unlocked with role {role.value}")
    return TokenResponse(
        access_token=token,
        role=role,
        expires_in=int(expires.total_seconds())
    )
