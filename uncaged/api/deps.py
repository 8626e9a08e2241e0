"""
Dependencias reutilizables para routers (FastAPI Depends).

- Guard de autenticación: extrae y valida el Access Token (Bearer), adjunta la identidad.
- Guard de admin: se compone después del anterior.
- Acceso a los servicios construidos en el startup (app.state).
- Mantener esta capa delgada: sin lógica de negocio.
"""
import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from uncaged.core.errors import (
    AdminRequired,
    AuthTokenInvalid,
    AuthTokenMissing,
    InvalidToken,
    RateLimited,
    ServiceUnavailable,
)
from uncaged.infrastructure.security.token_codec import TokenCodec
from uncaged.services.password_reset_service import PasswordResetService
from uncaged.services.session_service import SessionService

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class Identity:
    principal_id: str
    is_admin: bool


def _state(request: Request, name: str):
    # Sin Mongo en el startup los servicios no se construyen
    svc = getattr(request.app.state, name, None)
    if svc is None:
        raise ServiceUnavailable()
    return svc


def get_session_service(request: Request) -> SessionService:
    return _state(request, "session_service")


def get_password_reset_service(request: Request) -> PasswordResetService:
    return _state(request, "password_reset_service")


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    m = _BEARER.match(authorization.strip())
    return m.group(1).strip() if m else None


def get_current_identity(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    codec: TokenCodec = Depends(get_token_codec),
) -> Identity:
    token = bearer_token(authorization)
    if not token:
        raise AuthTokenMissing()
    try:
        claims = codec.verify_access(token)
    except InvalidToken:
        raise AuthTokenInvalid()
    identity = Identity(principal_id=claims.principal_id, is_admin=claims.is_admin)
    request.state.identity = identity
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise AdminRequired()
    return identity


def rate_limited(route: str, limit: int, window_seconds: int):
    """Dependencia de rate limit por IP + ruta (no-op si está deshabilitado)."""

    def _dep(request: Request) -> None:
        if not request.app.state.settings.rate_limit_enabled:
            return
        ip = request.client.host if request.client else ""
        if not request.app.state.rate_limiter.allow((ip, route), limit=limit, window_seconds=window_seconds):
            raise RateLimited()

    return _dep
