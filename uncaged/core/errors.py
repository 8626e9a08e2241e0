"""
Taxonomía de errores de la API.

Cada error esperado lleva un `code` estable (legible por máquina) y el status HTTP
con el que se responde. Los mensajes son deliberadamente genéricos: no distinguen
"email desconocido" de "contraseña incorrecta" ni "sin código" de "código expirado".
"""
from typing import Any, Optional


class AppError(Exception):
    status_code: int = 400
    code: str = "BAD_REQUEST"
    message: str = "Solicitud inválida"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Email o contraseña inválidos"


class RefreshTokenRequired(AppError):
    status_code = 400
    code = "REFRESH_TOKEN_REQUIRED"
    message = "Refresh token requerido"


class InvalidOrExpiredRefreshToken(AppError):
    status_code = 401
    code = "INVALID_OR_EXPIRED_REFRESH_TOKEN"
    message = "Refresh token inválido o expirado"


class InvalidCode(AppError):
    status_code = 400
    code = "INVALID_CODE"
    message = "Código inválido"


class AuthTokenMissing(AppError):
    status_code = 401
    code = "AUTH_TOKEN_MISSING"
    message = "No autorizado"


class AuthTokenInvalid(AppError):
    status_code = 401
    code = "AUTH_TOKEN_INVALID"
    message = "No autorizado"


class AdminRequired(AppError):
    status_code = 403
    code = "ADMIN_REQUIRED"
    message = "Se requieren permisos de administrador"


class UserNotFound(AppError):
    status_code = 404
    code = "USER_NOT_FOUND"
    message = "Usuario no encontrado"


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Validation error"


class RateLimited(AppError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    message = "Demasiados intentos, espera un momento"


class ServiceUnavailable(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    message = "Servicio no disponible, intenta más tarde"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"


class InvalidToken(Exception):
    """Access token con firma, estructura o expiración inválida (sin detalle)."""
