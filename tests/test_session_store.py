"""MongoSessionStore contra mongomock: estados activo/rotado/revocado/vencido."""
from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from uncaged.infrastructure.db.bootstrap import RT_COLL
from uncaged.infrastructure.db.schemas.refresh_token import RefreshTokenRecord
from uncaged.infrastructure.security.token_codec import TokenCodec
from uncaged.repositories.session_repo import MongoSessionStore

USER_ID = str(ObjectId())


def _record(clock, raw: str, user_id: str = USER_ID, days: int = 30) -> RefreshTokenRecord:
    now = clock()
    return RefreshTokenRecord(
        user_id=user_id,
        token_hash=TokenCodec.hash_refresh(raw),
        created_at=now,
        expires_at=now + timedelta(days=days),
        last_used_at=now,
    )


def test_insert_persists_hash_only(store, db, clock):
    raw = TokenCodec.new_refresh_value()
    store.insert(_record(clock, raw))

    doc = db[RT_COLL].find_one()
    assert doc["token_hash"] == TokenCodec.hash_refresh(raw)
    assert raw not in str(doc)
    assert isinstance(doc["user_id"], ObjectId)
    assert doc["revoked_at"] is None


def test_active_lookup_honours_expiry_without_purge(store, clock):
    raw = "rt-short"
    store.insert(_record(clock, raw, days=1))
    h = TokenCodec.hash_refresh(raw)
    assert store.find_active_by_hash(h, clock()) is not None

    clock.advance(days=1)
    # El documento sigue ahí (nadie purgó) pero ya no cuenta como activo
    assert store.find_active_by_hash(h, clock()) is None
    assert store.find_by_hash(h) is not None


def test_rotate_replaces_token_for_same_user(store, clock):
    store.insert(_record(clock, "rt-1"))
    clock.advance(minutes=5)

    new = store.rotate(
        TokenCodec.hash_refresh("rt-1"),
        new_token_hash=TokenCodec.hash_refresh("rt-2"),
        new_expires_at=clock() + timedelta(days=30),
        now=clock(),
    )
    assert new is not None and new.id
    assert new.user_id == USER_ID
    assert new.token_hash == TokenCodec.hash_refresh("rt-2")

    old = store.find_by_hash(TokenCodec.hash_refresh("rt-1"))
    assert old.revoked_reason == "rotated"
    assert old.revoked_at == clock()
    assert old.last_used_at == clock()
    assert store.find_active_by_hash(TokenCodec.hash_refresh("rt-2"), clock()) is not None


def test_rotate_same_token_twice_only_first_wins(store, clock):
    store.insert(_record(clock, "rt-1"))
    kwargs = dict(new_expires_at=clock() + timedelta(days=30), now=clock())

    first = store.rotate(TokenCodec.hash_refresh("rt-1"), new_token_hash=TokenCodec.hash_refresh("a"), **kwargs)
    second = store.rotate(TokenCodec.hash_refresh("rt-1"), new_token_hash=TokenCodec.hash_refresh("b"), **kwargs)

    assert first is not None
    assert second is None
    assert store.find_by_hash(TokenCodec.hash_refresh("b")) is None


def test_rotate_rejects_expired_and_unknown(store, clock):
    store.insert(_record(clock, "rt-1", days=1))
    clock.advance(days=2)
    kwargs = dict(new_expires_at=clock() + timedelta(days=30), now=clock())

    assert store.rotate(TokenCodec.hash_refresh("rt-1"), new_token_hash="x", **kwargs) is None
    assert store.rotate(TokenCodec.hash_refresh("nope"), new_token_hash="y", **kwargs) is None


def test_revoke_is_conditional(store, clock):
    store.insert(_record(clock, "rt-1"))
    h = TokenCodec.hash_refresh("rt-1")

    assert store.revoke(h, clock(), "logout") is True
    assert store.revoke(h, clock(), "logout") is False
    assert store.find_by_hash(h).revoked_reason == "logout"
    assert store.revoke(TokenCodec.hash_refresh("nope"), clock(), "logout") is False


def test_revoke_all_for_user_only_touches_active_chains(store, clock):
    other = str(ObjectId())
    store.insert(_record(clock, "a1"))
    store.insert(_record(clock, "a2"))
    store.insert(_record(clock, "a3", days=1))
    store.insert(_record(clock, "b1", user_id=other))
    store.revoke(TokenCodec.hash_refresh("a2"), clock(), "logout")
    clock.advance(days=2)

    assert store.revoke_all_for_user(USER_ID, clock(), "admin") == 1
    assert store.find_by_hash(TokenCodec.hash_refresh("a1")).revoked_reason == "admin"
    assert store.find_by_hash(TokenCodec.hash_refresh("a2")).revoked_reason == "logout"
    assert store.list_active_for_user(USER_ID, clock()) == []
    assert len(store.list_active_for_user(other, clock())) == 1


class SerializedCollection:
    """Colección mongomock donde cada operación es atómica, como en el servidor; registra las llamadas."""

    def __init__(self, coll, fail_on=()):
        self._coll = coll
        self._lock = threading.Lock()
        self._fail_on = set(fail_on)
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self._coll, name)
        if not callable(attr):
            return attr

        def _call(*args, **kwargs):
            with self._lock:
                self.calls.append((name, args, kwargs))
                if name in self._fail_on:
                    raise AutoReconnect("connection lost")
                return attr(*args, **kwargs)

        return _call


def test_concurrent_rotate_has_single_winner(db, clock):
    coll = SerializedCollection(db[RT_COLL])
    store = MongoSessionStore({RT_COLL: coll})
    store.insert(_record(clock, "rt-1"))
    coll.calls.clear()

    n = 8
    barrier = threading.Barrier(n)
    results = [None] * n

    def worker(i):
        barrier.wait()
        results[i] = store.rotate(
            TokenCodec.hash_refresh("rt-1"),
            new_token_hash=TokenCodec.hash_refresh(f"next-{i}"),
            new_expires_at=clock() + timedelta(days=30),
            now=clock(),
        )

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert db[RT_COLL].count_documents({"revoked_at": None}) == 1
    assert db[RT_COLL].count_documents({}) == 2

    # La revocación es una sola escritura condicional: nada de leer y después escribir
    names = [name for name, _, _ in coll.calls]
    assert set(names) == {"find_one_and_update", "insert_one"}
    assert names.count("find_one_and_update") == n
    assert names.count("insert_one") == 1
    for name, args, _ in coll.calls:
        if name == "find_one_and_update":
            flt = args[0]
            assert flt["token_hash"] == TokenCodec.hash_refresh("rt-1")
            assert flt["revoked_at"] is None
            assert "$gt" in flt["expires_at"]


def test_rotate_fails_closed_when_replacement_insert_fails(db, clock):
    store = MongoSessionStore(db)
    store.insert(_record(clock, "rt-1"))
    failing = MongoSessionStore({RT_COLL: SerializedCollection(db[RT_COLL], fail_on={"insert_one"})})

    with pytest.raises(AutoReconnect):
        failing.rotate(
            TokenCodec.hash_refresh("rt-1"),
            new_token_hash=TokenCodec.hash_refresh("rt-2"),
            new_expires_at=clock() + timedelta(days=30),
            now=clock(),
        )

    # El token viejo quedó revocado y no existe reemplazo: hay que volver a hacer login
    assert store.find_active_by_hash(TokenCodec.hash_refresh("rt-1"), clock()) is None
    assert store.find_by_hash(TokenCodec.hash_refresh("rt-2")) is None
