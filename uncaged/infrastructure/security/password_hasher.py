"""
Hash lento y con sal (argon2id) para contraseñas y códigos de reseteo.
"""
from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import VerifyMismatchError
from argon2.low_level import Type


class PasswordHasher:
    def __init__(self, *, time_cost: int = 2, memory_cost: int = 51200, parallelism: int = 2) -> None:
        self._ph = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
            type=Type.ID,
        )
        # Digest fijo para igualar el costo cuando no hay usuario que verificar
        self._dummy = self._ph.hash("uncaged-dummy-secret")

    def hash(self, secret: str) -> str:
        return self._ph.hash(secret)

    def verify(self, secret: str, digest: str) -> bool:
        """True si coincide. Un digest malformado lanza (InvalidHashError) y aborta la operación."""
        try:
            return self._ph.verify(digest, secret)
        except VerifyMismatchError:
            return False

    def burn(self, secret: str) -> None:
        self.verify(secret, self._dummy)
