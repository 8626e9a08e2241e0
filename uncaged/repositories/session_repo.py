"""Persistencia de refresh tokens (colección `refresh_token`).

Cada documento es un eslabón de una cadena de rotación. Se indexa por el hash
sha256 del valor; el valor crudo nunca llega a la base.

"Activo" = `revoked_at` nulo y `expires_at` en el futuro. La condición se evalúa
en cada consulta, así que un token vencido deja de servir aunque el índice TTL
todavía no lo haya borrado.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from uncaged.core.time import to_bson
from uncaged.infrastructure.db.bootstrap import RT_COLL
from uncaged.infrastructure.db.schemas.refresh_token import RefreshTokenRecord


class SessionStore(Protocol):
    """
    Store de sesiones (refresh tokens).

    `rotate` DEBE ser atómico respecto de otros `rotate`/`revoke` sobre el mismo hash:
    de dos llamadas concurrentes con el mismo token, solo una ve el registro activo.
    """

    def insert(self, record: RefreshTokenRecord) -> str: ...

    def find_active_by_hash(self, token_hash: str, now: datetime) -> Optional[RefreshTokenRecord]: ...

    def find_by_hash(self, token_hash: str) -> Optional[RefreshTokenRecord]: ...

    def revoke(self, token_hash: str, now: datetime, reason: str) -> bool: ...

    def rotate(
        self, token_hash: str, *, new_token_hash: str, new_expires_at: datetime, now: datetime
    ) -> Optional[RefreshTokenRecord]: ...

    def revoke_all_for_user(self, user_id: str, now: datetime, reason: str) -> int: ...

    def list_active_for_user(self, user_id: str, now: datetime) -> List[RefreshTokenRecord]: ...


def _active_filter(token_hash: str, now: datetime) -> Dict[str, Any]:
    return {"token_hash": token_hash, "revoked_at": None, "expires_at": {"$gt": to_bson(now)}}


class MongoSessionStore:
    def __init__(self, db: Database) -> None:
        self._coll = db[RT_COLL]

    def insert(self, record: RefreshTokenRecord) -> str:
        """Inserta refresh_token y devuelve id (str)."""
        res = self._coll.insert_one(record.to_doc())
        return str(res.inserted_id)

    def find_active_by_hash(self, token_hash: str, now: datetime) -> Optional[RefreshTokenRecord]:
        doc = self._coll.find_one(_active_filter(token_hash, now))
        return RefreshTokenRecord.from_doc(doc) if doc else None

    def find_by_hash(self, token_hash: str) -> Optional[RefreshTokenRecord]:
        """Sin filtro de estado; útil para diagnosticar reuso de un token ya rotado."""
        doc = self._coll.find_one({"token_hash": token_hash})
        return RefreshTokenRecord.from_doc(doc) if doc else None

    def revoke(self, token_hash: str, now: datetime, reason: str) -> bool:
        """Revoca solo si sigue activo. False si no existía o ya estaba revocado/vencido."""
        res = self._coll.update_one(
            _active_filter(token_hash, now),
            {"$set": {"revoked_at": to_bson(now), "revoked_reason": reason}},
        )
        return res.modified_count == 1

    def rotate(
        self, token_hash: str, *, new_token_hash: str, new_expires_at: datetime, now: datetime
    ) -> Optional[RefreshTokenRecord]:
        """
        Revoca el token actual y crea su reemplazo para el mismo usuario.

        La revocación es un único find_one_and_update condicionado a que el registro
        siga activo: es el punto de serialización. Quien pierde la carrera recibe None
        y nunca llega a insertar.

        El insert del reemplazo es una segunda escritura, sin transacción (funciona
        también en un Mongo standalone). Si falla, el token viejo ya quedó revocado y
        no hay reemplazo: la cadena termina cerrada y el cliente vuelve a hacer login.
        Nunca quedan dos tokens activos de la misma cadena.
        """
        ts = to_bson(now)
        old = self._coll.find_one_and_update(
            _active_filter(token_hash, now),
            {"$set": {"revoked_at": ts, "revoked_reason": "rotated", "last_used_at": ts}},
            return_document=ReturnDocument.BEFORE,
        )
        if not old:
            return None

        new = RefreshTokenRecord(
            user_id=str(old["user_id"]),
            token_hash=new_token_hash,
            created_at=now,
            expires_at=new_expires_at,
            last_used_at=now,
        )
        new.id = self.insert(new)
        return new

    def revoke_all_for_user(self, user_id: str, now: datetime, reason: str) -> int:
        """Revoca todas las cadenas activas de un usuario. Devuelve cuántas."""
        res = self._coll.update_many(
            {"user_id": ObjectId(user_id), "revoked_at": None, "expires_at": {"$gt": to_bson(now)}},
            {"$set": {"revoked_at": to_bson(now), "revoked_reason": reason}},
        )
        return res.modified_count

    def list_active_for_user(self, user_id: str, now: datetime) -> List[RefreshTokenRecord]:
        cur = self._coll.find(
            {"user_id": ObjectId(user_id), "revoked_at": None, "expires_at": {"$gt": to_bson(now)}},
            sort=[("created_at", -1)],
        )
        return [RefreshTokenRecord.from_doc(d) for d in cur]
