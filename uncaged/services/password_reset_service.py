"""
Reseteo de contraseña por código numérico de un solo uso.

Flujo: forgot_password -> (correo con código) -> check_reset_code -> reset_password.
Nunca emite tokens; el cliente hace login de nuevo después del cambio.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from uncaged.core.errors import InvalidCode
from uncaged.core.time import Clock, now_utc
from uncaged.infrastructure.db.schemas.user import Principal
from uncaged.infrastructure.email.email_client import MailDeliveryError, MailSender, send_reset_code_email
from uncaged.infrastructure.security.password_hasher import PasswordHasher
from uncaged.repositories.principal_repo import PrincipalRepository
from uncaged.services.session_service import SessionService, normalize_email

_log = logging.getLogger("uncaged.reset")


def generate_numeric_code(length: int = 6) -> str:
    """Código sin cero inicial (p. ej. 100000-999999 para 6 dígitos)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


class PasswordResetService:
    def __init__(
        self,
        *,
        principals: PrincipalRepository,
        sessions: SessionService,
        hasher: PasswordHasher,
        mailer: MailSender,
        code_ttl_minutes: int = 15,
        code_length: int = 6,
        clock: Clock = now_utc,
    ) -> None:
        self.principals = principals
        self.sessions = sessions
        self.hasher = hasher
        self.mailer = mailer
        self._code_ttl_minutes = code_ttl_minutes
        self._code_length = code_length
        self._clock = clock

    def forgot_password(self, email: str) -> None:
        """
        Genera y envía un código. Si el email no existe responde igual (sin efectos)
        para no revelar qué cuentas existen.
        """
        principal = self.principals.find_by_email(normalize_email(email))
        if principal is None:
            # Mismo costo que hashear el código de una cuenta real
            self.hasher.burn(email or "")
            return

        code = generate_numeric_code(self._code_length)
        expires_at = self._clock() + timedelta(minutes=self._code_ttl_minutes)
        self.principals.set_reset_code(principal.id, self.hasher.hash(code), expires_at)

        try:
            send_reset_code_email(self.mailer, principal.email, code, self._code_ttl_minutes)
        except MailDeliveryError as e:
            # Misma respuesta que un email desconocido; el código queda guardado y se puede pedir otro
            _log.error("No se pudo enviar código de reseteo user_id=%s: %s", principal.id, e)
            return
        _log.info("código de reseteo emitido user_id=%s", principal.id)

    def check_reset_code(self, email: str, code: str) -> None:
        self._verified_principal(email, code)

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        """
        Cambia la contraseña si el código es válido y lo consume (un solo uso).
        Revoca todas las sesiones abiertas del usuario.
        """
        principal = self._verified_principal(email, code)
        consumed = self.principals.consume_reset_code(
            principal.id, principal.reset_code_hash or "", self.hasher.hash(new_password)
        )
        if not consumed:
            # Otro request consumió o reemplazó el código entre la verificación y la escritura
            raise InvalidCode()
        self.sessions.revoke_all(principal.id, "password_reset")
        _log.info("contraseña reseteada user_id=%s", principal.id)

    def _verified_principal(self, email: str, code: str) -> Principal:
        # Sin usuario, sin código, vencido o distinto: mismo error y mismo costo de CPU
        code = (code or "").strip()
        principal: Optional[Principal] = self.principals.find_by_email(normalize_email(email))
        if principal is None or not principal.reset_code_hash:
            self.hasher.burn(code)
            raise InvalidCode()
        expires_at = principal.reset_code_expires_at
        if expires_at is None or expires_at <= self._clock():
            self.hasher.burn(code)
            raise InvalidCode()
        if not self.hasher.verify(code, principal.reset_code_hash):
            raise InvalidCode()
        return principal
