"""Cliente MongoDB (pymongo) compartido por el proceso.

`init_mongo()` se llama una sola vez en el startup; repositorios reciben la
`Database` ya resuelta, nunca leen el global directamente.
"""
import logging
from typing import Optional

import certifi
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from uncaged.core.config import Settings

_log = logging.getLogger("uncaged.mongo")

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def _client_kwargs(settings: Settings) -> dict:
    # Ajustes conservadores: 15s y CA de certifi incluso con SRV
    kwargs = dict(serverSelectionTimeoutMS=15000)
    if settings.mongo_uri.startswith("mongodb+srv://"):
        # SRV ya implica TLS; proveemos CA bundle para robustez
        kwargs["tlsCAFile"] = certifi.where()
    elif settings.mongo_tls:
        kwargs["tls"] = True
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsAllowInvalidCertificates"] = settings.mongo_tls_insecure
        kwargs["tlsAllowInvalidHostnames"] = settings.mongo_tls_allow_invalid_hostnames
    return kwargs


def init_mongo(settings: Settings) -> Optional[Database]:
    """
    Inicializa el cliente y valida conexión (ping).
    Si Mongo no responde, deja la DB en None y loggea; la app sigue arriba
    y las rutas de auth responden 503 hasta que se reinicie.
    """
    global _client, _db
    try:
        _client = MongoClient(settings.mongo_uri, **_client_kwargs(settings))
        _client.admin.command("ping")
        _db = _client[settings.mongo_db]
        _log.info("Mongo conectado db=%s", settings.mongo_db)
    except PyMongoError as e:
        _log.warning("Mongo no accesible: %s", e)
        _client = None
        _db = None
    return _db


def close_mongo() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None
