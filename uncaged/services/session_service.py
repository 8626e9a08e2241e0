"""
Ciclo de vida de sesiones: login, refresh con rotación, logout y revocación masiva.

Estados de una cadena de rotación:
    NONE -> ACTIVE(rt1) -> ACTIVE(rt2) -> ... -> REVOKED | EXPIRED

Cada login abre una cadena independiente (multi-dispositivo); no revoca las previas.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from uncaged.core.errors import InvalidCredentials, InvalidOrExpiredRefreshToken, RefreshTokenRequired
from uncaged.core.time import Clock, now_utc
from uncaged.infrastructure.db.schemas.refresh_token import RefreshTokenRecord
from uncaged.infrastructure.security.password_hasher import PasswordHasher
from uncaged.infrastructure.security.token_codec import TokenCodec
from uncaged.repositories.principal_repo import PrincipalRepository
from uncaged.repositories.session_repo import SessionStore

_log = logging.getLogger("uncaged.auth")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class SessionService:
    def __init__(
        self,
        *,
        principals: PrincipalRepository,
        sessions: SessionStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        refresh_ttl_days: int = 30,
        clock: Clock = now_utc,
    ) -> None:
        self.principals = principals
        self.sessions = sessions
        self.hasher = hasher
        self.codec = codec
        self._refresh_ttl = timedelta(days=refresh_ttl_days)
        self._clock = clock

    def login(self, email: str, password: str) -> TokenPair:
        """
        Verifica credenciales y abre una cadena nueva.
        Email desconocido y contraseña incorrecta producen el mismo error.
        """
        principal = self.principals.find_by_email(normalize_email(email))
        if principal is None or not principal.password_hash:
            # mismo costo de CPU que una contraseña incorrecta
            self.hasher.burn(password)
            raise InvalidCredentials()
        if not self.hasher.verify(password, principal.password_hash):
            raise InvalidCredentials()

        access = self.codec.sign_access(principal.id, principal.is_admin)
        raw = self.codec.new_refresh_value()
        now = self._clock()
        self.sessions.insert(
            RefreshTokenRecord(
                user_id=principal.id,
                token_hash=self.codec.hash_refresh(raw),
                created_at=now,
                expires_at=now + self._refresh_ttl,
                last_used_at=now,
            )
        )
        _log.info("login ok user_id=%s", principal.id)
        return TokenPair(access_token=access, refresh_token=raw)

    def refresh(self, refresh_value: str) -> TokenPair:
        """
        Rota el refresh token: revoca el actual y emite un par nuevo.

        El valor anterior queda inutilizable para siempre. Si dos clientes presentan el
        mismo valor (p. ej. token robado) solo uno gana; el otro debe volver a autenticarse.
        """
        if not refresh_value:
            raise RefreshTokenRequired()

        token_hash = self.codec.hash_refresh(refresh_value)
        now = self._clock()
        new_raw = self.codec.new_refresh_value()
        rotated = self.sessions.rotate(
            token_hash,
            new_token_hash=self.codec.hash_refresh(new_raw),
            new_expires_at=now + self._refresh_ttl,
            now=now,
        )
        if rotated is None:
            self._log_rejected_refresh(token_hash)
            raise InvalidOrExpiredRefreshToken()

        principal = self.principals.get_by_id(rotated.user_id)
        if principal is None:
            # El usuario fue borrado: no dejar viva la cadena recién creada
            self.sessions.revoke(rotated.token_hash, now, "user_deleted")
            raise InvalidOrExpiredRefreshToken()

        access = self.codec.sign_access(principal.id, principal.is_admin)
        return TokenPair(access_token=access, refresh_token=new_raw)

    def logout(self, refresh_value: str) -> None:
        """Idempotente: token vacío, desconocido o ya revocado no es error."""
        if not refresh_value:
            return
        if self.sessions.revoke(self.codec.hash_refresh(refresh_value), self._clock(), "logout"):
            _log.info("logout ok")

    def revoke_all(self, principal_id: str, reason: str) -> int:
        n = self.sessions.revoke_all_for_user(principal_id, self._clock(), reason)
        _log.info("sesiones revocadas user_id=%s n=%s reason=%s", principal_id, n, reason)
        return n

    def _log_rejected_refresh(self, token_hash: str) -> None:
        record = self.sessions.find_by_hash(token_hash)
        if record is None:
            return
        if record.revoked_at is not None:
            # Un valor ya revocado volvió a presentarse: posible robo del token
            _log.warning(
                "reuso de refresh token revocado user_id=%s record_id=%s revoked_reason=%s",
                record.user_id, record.id, record.revoked_reason,
            )
        else:
            _log.info("refresh rechazado por expiración user_id=%s", record.user_id)
