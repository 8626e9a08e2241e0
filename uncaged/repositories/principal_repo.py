"""Persistencia de la identidad (colección `user`) usada por autenticación.

Solo lee id/email/hash/admin y escribe el hash de contraseña y los campos de reseteo.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database

from uncaged.core.time import now_utc, to_bson
from uncaged.infrastructure.db.bootstrap import USER_COLL
from uncaged.infrastructure.db.schemas.user import Principal


def _oid(user_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


class PrincipalRepository:
    def __init__(self, db: Database) -> None:
        self._coll = db[USER_COLL]

    def find_by_email(self, email: str) -> Optional[Principal]:
        """Busca usuario por email (email ya normalizado en minúsculas)."""
        doc = self._coll.find_one({"email": email})
        return Principal.from_doc(doc) if doc else None

    def get_by_id(self, user_id: str) -> Optional[Principal]:
        oid = _oid(user_id)
        if oid is None:
            return None
        doc = self._coll.find_one({"_id": oid})
        return Principal.from_doc(doc) if doc else None

    def insert(self, *, email: str, password_hash: str, is_admin: bool = False, extra: Optional[Dict[str, Any]] = None) -> str:
        """Inserta usuario mínimo y devuelve id (str). Usado por scripts y tests."""
        now = to_bson(now_utc())
        doc: Dict[str, Any] = dict(extra or {})
        doc.update({
            "email": email,
            "password_hash": password_hash,
            "is_admin": is_admin,
            "created_at": now,
            "updated_at": now,
        })
        return str(self._coll.insert_one(doc).inserted_id)

    def set_admin(self, user_id: str, is_admin: bool) -> bool:
        res = self._coll.update_one(
            {"_id": _oid(user_id)},
            {"$set": {"is_admin": is_admin, "updated_at": to_bson(now_utc())}},
        )
        return res.matched_count == 1

    def set_reset_code(self, user_id: str, code_hash: str, expires_at: datetime) -> None:
        """Guarda hash del código y expiración; pisa cualquier código anterior."""
        self._coll.update_one(
            {"_id": _oid(user_id)},
            {
                "$set": {
                    "reset_code_hash": code_hash,
                    "reset_code_expires_at": to_bson(expires_at),
                    "updated_at": to_bson(now_utc()),
                }
            },
        )

    def consume_reset_code(self, user_id: str, expected_code_hash: str, new_password_hash: str) -> bool:
        """Cambia la contraseña y borra el código en una sola escritura.

        Solo aplica si el hash guardado sigue siendo `expected_code_hash`; devuelve
        False si otro request ya lo consumió o lo reemplazó.
        """
        res = self._coll.update_one(
            {"_id": _oid(user_id), "reset_code_hash": expected_code_hash},
            {
                "$set": {"password_hash": new_password_hash, "updated_at": to_bson(now_utc())},
                "$unset": {"reset_code_hash": "", "reset_code_expires_at": ""},
            },
        )
        return res.modified_count == 1
