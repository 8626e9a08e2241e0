"""Crea (o promueve) un usuario administrador.

Uso típico:
  PYTHONPATH=. python scripts/bootstrap_admin.py --email admin@example.com --password 'Secret123!'

  # o vía entorno
  ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD='Secret123!' PYTHONPATH=. python scripts/bootstrap_admin.py

Características:
  - Si el email ya existe, solo marca is_admin=True (no toca la contraseña).
  - Valida la política de contraseñas de la API.
  - Dry-run con --dry-run (muestra qué haría).
"""
from __future__ import annotations

import argparse
import os
import sys

from uncaged.api.schemas.auth import PASSWORD_ERROR_MESSAGE, PASSWORD_REGEX
from uncaged.core.config import get_settings
from uncaged.infrastructure.db.bootstrap import ensure_collections
from uncaged.infrastructure.db.mongo import close_mongo, init_mongo
from uncaged.infrastructure.security.password_hasher import PasswordHasher
from uncaged.repositories.principal_repo import PrincipalRepository


def bootstrap_admin(repo: PrincipalRepository, hasher: PasswordHasher, email: str, password: str, dry_run: bool = False) -> str:
    """Devuelve 'created', 'promoted' o 'already_admin'."""
    email = email.strip().lower()
    existing = repo.find_by_email(email)
    if existing:
        if existing.is_admin:
            return "already_admin"
        if not dry_run:
            repo.set_admin(existing.id, True)
        return "promoted"
    if not dry_run:
        repo.insert(email=email, password_hash=hasher.hash(password), is_admin=True)
    return "created"


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Crea o promueve un admin")
    ap.add_argument("--email", default=os.environ.get("ADMIN_EMAIL"))
    ap.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"))
    ap.add_argument("--dry-run", action="store_true")
    args = ap.parse_args(argv)

    if not args.email or not args.password:
        ap.error("--email y --password (o ADMIN_EMAIL/ADMIN_PASSWORD) son obligatorios")
    if not PASSWORD_REGEX.match(args.password):
        ap.error(PASSWORD_ERROR_MESSAGE)

    settings = get_settings()
    db = init_mongo(settings)
    if db is None:
        print("[bootstrap_admin] Mongo no accesible", file=sys.stderr)
        return 1
    try:
        ensure_collections(db)
        hasher = PasswordHasher(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )
        status = bootstrap_admin(PrincipalRepository(db), hasher, args.email, args.password, dry_run=args.dry_run)
    finally:
        close_mongo()
    print(f"[bootstrap_admin] {args.email}: {status}{' (dry-run)' if args.dry_run else ''}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
