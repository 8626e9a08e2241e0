"""
Vista Pydantic de la colección `user` con los campos que usa autenticación.

El resto del documento (perfil, listas de películas, ratings) pertenece al CRUD de usuarios.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from uncaged.core.time import as_utc


class Principal(BaseModel):
    id: str  # ObjectId en string
    email: str
    password_hash: str
    is_admin: bool = False
    reset_code_hash: Optional[str] = None
    reset_code_expires_at: Optional[datetime] = None

    @field_validator("reset_code_expires_at")
    @classmethod
    def _aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Principal":
        return cls(
            id=str(doc["_id"]),
            email=doc["email"],
            password_hash=doc.get("password_hash") or "",
            is_admin=bool(doc.get("is_admin", False)),
            # Documentos antiguos guardan "" en vez de borrar el campo
            reset_code_hash=doc.get("reset_code_hash") or None,
            reset_code_expires_at=doc.get("reset_code_expires_at"),
        )
