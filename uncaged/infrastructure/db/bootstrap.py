"""
Bootstrap de la base Mongo: define y aplica validadores (JSON Schema) e índices.
Se ejecuta al inicio de la app para asegurar colecciones mínimas y consistencia.
No tumba la app si algo falla; deja warnings en casos no críticos.

El índice TTL de `refresh_token.expires_at` es quien purga los tokens vencidos.
La app nunca depende de que ya haya corrido: las consultas filtran por expiración.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from pymongo.database import Database
from pymongo.errors import PyMongoError

USER_COLL = "user"
RT_COLL = "refresh_token"

_log = logging.getLogger("uncaged.mongo.bootstrap")


USER_VALIDATOR: Dict[str, Any] = {
    "bsonType": "object",
    "required": ["email", "password_hash"],
    "properties": {
        "email": {"bsonType": "string", "minLength": 3, "maxLength": 255, "description": "lowercase"},
        "password_hash": {"bsonType": "string"},
        "is_admin": {"bsonType": "bool"},
        "reset_code_hash": {"bsonType": ["string", "null"]},
        "reset_code_expires_at": {"bsonType": ["date", "null"]},
        "created_at": {"bsonType": "date"},
        "updated_at": {"bsonType": "date"},
    },
    "additionalProperties": True,
}

REFRESH_TOKEN_VALIDATOR: Dict[str, Any] = {
    "bsonType": "object",
    "required": ["user_id", "token_hash", "created_at", "expires_at"],
    "properties": {
        "user_id": {"bsonType": "objectId"},
        "token_hash": {"bsonType": "string"},
        "created_at": {"bsonType": "date"},
        "expires_at": {"bsonType": "date"},
        "last_used_at": {"bsonType": ["date", "null"]},
        "revoked_at": {"bsonType": ["date", "null"]},
        "revoked_reason": {"bsonType": ["string", "null"]},
    },
    "additionalProperties": True,
}


def _collmod_or_create(db: Database, name: str, validator: Dict[str, Any] | None) -> None:
    try:
        if name not in db.list_collection_names():
            if validator:
                db.create_collection(name, validator={"$jsonSchema": validator})
            else:
                db.create_collection(name)
        elif validator:
            db.command({
                "collMod": name,
                "validator": {"$jsonSchema": validator},
                "validationLevel": "moderate",
            })
    except PyMongoError as e:
        # No aborta el arranque; solo deja sin validator estricto.
        _log.warning("No se pudo aplicar validator en '%s': %s", name, e)


def _ensure_indexes(db: Database, name: str, indexes: List[Dict[str, Any]]) -> None:
    coll = db[name]
    for ix in indexes:
        ix = dict(ix)
        keys = ix.pop("keys")
        try:
            coll.create_index(keys, **ix)
        except PyMongoError as e:
            # Ignora fallas de índice (e.g., ya existe con otras opciones o datos no únicos previos)
            _log.warning("No se pudo crear índice en '%s' (%s): %s", name, keys, e)


def ensure_collections(db: Database) -> None:
    """
    Garantiza colecciones, validadores e índices mínimos.
    """
    _collmod_or_create(db, USER_COLL, USER_VALIDATOR)
    _ensure_indexes(
        db,
        USER_COLL,
        [
            {"keys": [("email", 1)], "unique": True, "name": "uniq_email"},
        ],
    )

    _collmod_or_create(db, RT_COLL, REFRESH_TOKEN_VALIDATOR)
    _ensure_indexes(
        db,
        RT_COLL,
        [
            {"keys": [("token_hash", 1)], "unique": True, "name": "uniq_token_hash"},
            {"keys": [("user_id", 1), ("expires_at", 1)], "name": "ix_user_expires"},
            {"keys": [("expires_at", 1)], "expireAfterSeconds": 0, "name": "ttl_expires_at"},
        ],
    )
    _log.info("Colecciones e índices verificados")
