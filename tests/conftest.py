"""Fixtures compartidos: Mongo en memoria (mongomock), reloj controlable y dobles de correo/store.

JWT_SECRET se define antes de importar la app: `uncaged.main` construye la app al importarse.
"""
from __future__ import annotations

import os

os.environ.setdefault("JWT_SECRET", "test-secret-not-for-prod")

import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import mongomock
import pytest
from fastapi.testclient import TestClient

from uncaged.core.config import Settings
from uncaged.infrastructure.db.schemas.refresh_token import RefreshTokenRecord
from uncaged.infrastructure.email.email_client import MailDeliveryError
from uncaged.infrastructure.security.password_hasher import PasswordHasher
from uncaged.infrastructure.security.token_codec import TokenCodec
from uncaged.main import create_app
from uncaged.repositories.principal_repo import PrincipalRepository
from uncaged.repositories.session_repo import MongoSessionStore
from uncaged.services.password_reset_service import PasswordResetService
from uncaged.services.session_service import SessionService

SECRET = "test-secret-not-for-prod"
PASSWORD = "Secret123!"


# ------------------------------ Doubles ----------------------------------- #
class FakeClock:
    """Reloj fijo que solo avanza cuando el test lo pide."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Optional[str]]] = []
        self.fail = False

    def send(self, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None:
        if self.fail:
            raise MailDeliveryError("smtp down")
        self.sent.append({"to": to_email, "subject": subject, "text": text_body, "html": html_body})

    def last_code(self) -> str:
        m = re.search(r"code is: (\d+)", self.sent[-1]["text"] or "")
        assert m, "el correo no contiene código"
        return m.group(1)


class InMemorySessionStore:
    """Store de sesiones en memoria; el lock hace de punto de serialización."""

    def __init__(self) -> None:
        self._rows: Dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()
        self._seq = 0

    def _insert(self, record: RefreshTokenRecord) -> str:
        self._seq += 1
        rec = record.model_copy(update={"id": str(self._seq)})
        self._rows[rec.token_hash] = rec
        return rec.id

    def insert(self, record: RefreshTokenRecord) -> str:
        with self._lock:
            return self._insert(record)

    def find_active_by_hash(self, token_hash: str, now: datetime) -> Optional[RefreshTokenRecord]:
        rec = self._rows.get(token_hash)
        return rec if rec and rec.is_active(now) else None

    def find_by_hash(self, token_hash: str) -> Optional[RefreshTokenRecord]:
        return self._rows.get(token_hash)

    def revoke(self, token_hash: str, now: datetime, reason: str) -> bool:
        with self._lock:
            rec = self._rows.get(token_hash)
            if rec is None or not rec.is_active(now):
                return False
            self._rows[token_hash] = rec.model_copy(update={"revoked_at": now, "revoked_reason": reason})
            return True

    def rotate(
        self, token_hash: str, *, new_token_hash: str, new_expires_at: datetime, now: datetime
    ) -> Optional[RefreshTokenRecord]:
        with self._lock:
            old = self._rows.get(token_hash)
            if old is None or not old.is_active(now):
                return None
            self._rows[token_hash] = old.model_copy(
                update={"revoked_at": now, "revoked_reason": "rotated", "last_used_at": now}
            )
            new = RefreshTokenRecord(
                user_id=old.user_id,
                token_hash=new_token_hash,
                created_at=now,
                expires_at=new_expires_at,
                last_used_at=now,
            )
            new.id = self._insert(new)
            return new

    def revoke_all_for_user(self, user_id: str, now: datetime, reason: str) -> int:
        with self._lock:
            n = 0
            for h, rec in list(self._rows.items()):
                if rec.user_id == user_id and rec.is_active(now):
                    self._rows[h] = rec.model_copy(update={"revoked_at": now, "revoked_reason": reason})
                    n += 1
            return n

    def list_active_for_user(self, user_id: str, now: datetime) -> List[RefreshTokenRecord]:
        return [r for r in self._rows.values() if r.user_id == user_id and r.is_active(now)]


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def db():
    return mongomock.MongoClient()["uncaged"]


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def hasher() -> PasswordHasher:
    # Parámetros mínimos de argon2 para que la suite sea rápida
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture()
def codec(clock) -> TokenCodec:
    return TokenCodec(secret=SECRET, clock=clock)


@pytest.fixture()
def principals(db) -> PrincipalRepository:
    return PrincipalRepository(db)


@pytest.fixture()
def store(db) -> MongoSessionStore:
    return MongoSessionStore(db)


@pytest.fixture()
def session_service(principals, store, hasher, codec, clock) -> SessionService:
    return SessionService(principals=principals, sessions=store, hasher=hasher, codec=codec, clock=clock)


@pytest.fixture()
def reset_service(principals, session_service, hasher, mailer, clock) -> PasswordResetService:
    return PasswordResetService(
        principals=principals, sessions=session_service, hasher=hasher, mailer=mailer, clock=clock
    )


@pytest.fixture()
def make_user(principals, hasher):
    """Factory: crea un usuario y devuelve su id."""

    def _make(email: str = "ana@example.com", password: str = PASSWORD, is_admin: bool = False) -> str:
        return principals.insert(email=email, password_hash=hasher.hash(password), is_admin=is_admin)

    return _make


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret=SECRET,
        argon2_time_cost=1,
        argon2_memory_cost=8,
        argon2_parallelism=1,
        rate_limit_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture()
def app(settings, db, mailer, clock):
    return create_app(settings, db=db, mailer=mailer, clock=clock)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c
