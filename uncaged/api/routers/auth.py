"""Rutas de autenticación: login, refresh, logout y reseteo de contraseña."""
from fastapi import APIRouter, Depends, Response, status

from uncaged.api.deps import (
    Identity,
    get_current_identity,
    get_password_reset_service,
    get_session_service,
    rate_limited,
    require_admin,
)
from uncaged.api.schemas.auth import (
    CheckCodePayload,
    ForgotPasswordPayload,
    LoginPayload,
    LogoutPayload,
    MeOut,
    RefreshPayload,
    ResetPasswordPayload,
    RevokedSessionsOut,
    TokenPairOut,
)
from uncaged.core.errors import UserNotFound
from uncaged.services.password_reset_service import PasswordResetService
from uncaged.services.session_service import SessionService

router = APIRouter(prefix="/auth", tags=["Auth"])

FIVE_MINUTES = 5 * 60
FIFTEEN_MINUTES = 15 * 60


@router.post(
    "/login",
    response_model=TokenPairOut,
    summary="Login",
    description="Verifica email + contraseña y emite access token + refresh token.",
    dependencies=[Depends(rate_limited("/auth/login", limit=10, window_seconds=FIVE_MINUTES))],
)
def login(payload: LoginPayload, service: SessionService = Depends(get_session_service)) -> TokenPairOut:
    pair = service.login(payload.email, payload.password)
    return TokenPairOut(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post(
    "/refresh",
    response_model=TokenPairOut,
    summary="Rotar refresh token",
    description="Revoca el refresh token presentado y emite un par nuevo.",
    dependencies=[Depends(rate_limited("/auth/refresh", limit=60, window_seconds=FIVE_MINUTES))],
)
def refresh(payload: RefreshPayload, service: SessionService = Depends(get_session_service)) -> TokenPairOut:
    pair = service.refresh(payload.refresh_token)
    return TokenPairOut(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="Cerrar sesión",
    description="Revoca el refresh token actual. Idempotente.",
)
def logout(
    payload: LogoutPayload,
    _: Identity = Depends(get_current_identity),
    service: SessionService = Depends(get_session_service),
) -> Response:
    service.logout(payload.refresh_token)
    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/forgotPassword",
    status_code=status.HTTP_200_OK,
    summary="Solicitar código de reseteo",
    description="Envía un código por correo. Responde 200 aunque el email no exista.",
    dependencies=[Depends(rate_limited("/auth/forgotPassword", limit=5, window_seconds=FIFTEEN_MINUTES))],
)
def forgot_password(
    payload: ForgotPasswordPayload, service: PasswordResetService = Depends(get_password_reset_service)
) -> Response:
    service.forgot_password(payload.email)
    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/checkCode",
    status_code=status.HTTP_200_OK,
    summary="Verificar código de reseteo",
    dependencies=[Depends(rate_limited("/auth/checkCode", limit=8, window_seconds=FIFTEEN_MINUTES))],
)
def check_code(payload: CheckCodePayload, service: PasswordResetService = Depends(get_password_reset_service)) -> Response:
    service.check_reset_code(payload.email, payload.code)
    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/resetPassword",
    status_code=status.HTTP_200_OK,
    summary="Resetear contraseña",
    description="Consume el código y cambia la contraseña; revoca todas las sesiones.",
    dependencies=[Depends(rate_limited("/auth/resetPassword", limit=5, window_seconds=FIFTEEN_MINUTES))],
)
def reset_password(
    payload: ResetPasswordPayload, service: PasswordResetService = Depends(get_password_reset_service)
) -> Response:
    service.reset_password(payload.email, payload.code, payload.new_password)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/me", response_model=MeOut, summary="Identidad del access token")
def me(identity: Identity = Depends(get_current_identity)) -> MeOut:
    return MeOut(id=identity.principal_id, is_admin=identity.is_admin)


@router.post(
    "/users/{user_id}/revokeSessions",
    response_model=RevokedSessionsOut,
    summary="Forzar logout de un usuario",
    description="Revoca todas las cadenas de refresh del usuario. Solo admin.",
)
def revoke_sessions(
    user_id: str,
    _: Identity = Depends(require_admin),
    service: SessionService = Depends(get_session_service),
) -> RevokedSessionsOut:
    if service.principals.get_by_id(user_id) is None:
        raise UserNotFound()
    return RevokedSessionsOut(revoked=service.revoke_all(user_id, "admin"))
