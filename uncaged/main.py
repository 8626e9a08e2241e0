"""Entrada principal de la app FastAPI (configura middlewares, excepciones, servicios y routers).

Arranque: `uvicorn uncaged.main:app`. Sin JWT_SECRET el import falla (fail fast).
"""
import logging
from typing import Optional

from fastapi import FastAPI
from pymongo.database import Database

from uncaged.api.router import api_router
from uncaged.core.config import Settings, get_settings
from uncaged.core.exceptions import register_exception_handlers
from uncaged.core.logging import setup_logging
from uncaged.core.middleware import add_middlewares
from uncaged.core.rate_limit import RateLimiter
from uncaged.core.time import Clock, now_utc
from uncaged.infrastructure.db.bootstrap import ensure_collections
from uncaged.infrastructure.db.mongo import close_mongo, init_mongo
from uncaged.infrastructure.email.email_client import MailSender, SmtpMailSender
from uncaged.infrastructure.security.password_hasher import PasswordHasher
from uncaged.infrastructure.security.token_codec import TokenCodec
from uncaged.repositories.principal_repo import PrincipalRepository
from uncaged.repositories.session_repo import MongoSessionStore
from uncaged.services.password_reset_service import PasswordResetService
from uncaged.services.session_service import SessionService

_log = logging.getLogger("uncaged.startup")


def wire_services(app: FastAPI, db: Database, mailer: MailSender, clock: Clock) -> None:
    """Construye repositorios y servicios sobre `db` y los cuelga de app.state."""
    settings: Settings = app.state.settings
    hasher = PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    principals = PrincipalRepository(db)
    session_service = SessionService(
        principals=principals,
        sessions=MongoSessionStore(db),
        hasher=hasher,
        codec=app.state.token_codec,
        refresh_ttl_days=settings.refresh_token_expire_days,
        clock=clock,
    )
    app.state.db = db
    app.state.session_service = session_service
    app.state.password_reset_service = PasswordResetService(
        principals=principals,
        sessions=session_service,
        hasher=hasher,
        mailer=mailer,
        code_ttl_minutes=settings.reset_code_expire_minutes,
        code_length=settings.reset_code_length,
        clock=clock,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    db: Optional[Database] = None,
    mailer: Optional[MailSender] = None,
    clock: Clock = now_utc,
) -> FastAPI:
    """
    Crea la app. Si se pasa `db` (tests, scripts) los servicios quedan listos de inmediato;
    si no, se conecta a Mongo en el startup.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.rate_limiter = RateLimiter()
    # El secreto se lee una vez aquí y el codec se inyecta a quien lo necesite
    app.state.token_codec = TokenCodec(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        access_ttl_minutes=settings.access_token_expire_minutes,
        clock=clock,
    )
    app.state.db = None
    mailer = mailer or SmtpMailSender(settings)

    add_middlewares(app, settings)
    register_exception_handlers(app)

    if db is not None:
        wire_services(app, db, mailer, clock)
    else:
        @app.on_event("startup")
        def on_startup() -> None:
            mongo_db = init_mongo(settings)
            if mongo_db is None:
                _log.warning("Mongo no listo; servicios de auth no disponibles")
                return
            # Garantiza colecciones/índices/TTL mínimos
            ensure_collections(mongo_db)
            wire_services(app, mongo_db, mailer, clock)

        @app.on_event("shutdown")
        def on_shutdown() -> None:
            close_mongo()

    # Monta routers bajo el prefijo configurado
    app.include_router(api_router, prefix=settings.api_prefix_normalized)
    return app


app = create_app()
