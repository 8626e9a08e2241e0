"""
Creación y verificación de JWTs de acceso y generación de refresh tokens opacos.

El secreto de firma se inyecta al construir el codec (startup) y no cambia en runtime.
"""
import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict
from uuid import uuid4

import jwt as pyjwt

from uncaged.core.errors import InvalidToken
from uncaged.core.time import Clock, now_utc


@dataclass(frozen=True)
class AccessClaims:
    principal_id: str
    is_admin: bool


class TokenCodec:
    def __init__(
        self,
        *,
        secret: str,
        algorithm: str = "HS256",
        access_ttl_minutes: int = 15,
        clock: Clock = now_utc,
    ) -> None:
        if not secret:
            raise ValueError("Se requiere un secreto de firma")
        self._secret = secret
        self._algorithm = algorithm
        self._access_ttl = timedelta(minutes=access_ttl_minutes)
        self._clock = clock

    def sign_access(self, principal_id: str, is_admin: bool) -> str:
        """
        Genera un JWT válido por `access_ttl_minutes`.
        Claims: sub(user_id), isAdmin, iat, exp, jti.
        """
        now = self._clock()
        payload: Dict[str, Any] = {
            "sub": str(principal_id),
            "isAdmin": bool(is_admin),
            "iat": int(now.timestamp()),
            "exp": int((now + self._access_ttl).timestamp()),
            "jti": uuid4().hex,
        }
        return pyjwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_access(self, token: str) -> AccessClaims:
        """
        Valida firma/estructura/expiración. Cualquier falla es el mismo InvalidToken.
        """
        try:
            payload = self._decode(token)
        except pyjwt.PyJWTError as e:
            raise InvalidToken("Token inválido") from e

        sub = payload.get("sub")
        is_admin = payload.get("isAdmin", False)
        if not isinstance(sub, str) or not sub or not isinstance(is_admin, bool):
            raise InvalidToken("Token inválido")
        return AccessClaims(principal_id=sub, is_admin=is_admin)

    def _decode(self, token: str) -> Dict[str, Any]:
        # exp se compara contra el reloj del codec (inyectable), no contra time.time()
        payload = pyjwt.decode(
            token,
            key=self._secret,
            algorithms=[self._algorithm],
            options={"require": ["sub", "exp"], "verify_exp": False, "verify_iat": False},
        )
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self._clock().timestamp():
            raise pyjwt.ExpiredSignatureError("Signature has expired")
        return payload

    @staticmethod
    def new_refresh_value() -> str:
        # 256 bits aleatorios, base64url sin padding
        return secrets.token_urlsafe(32)

    @staticmethod
    def hash_refresh(value: str) -> str:
        return hashlib.sha256(value.encode("utf-8")).hexdigest()
