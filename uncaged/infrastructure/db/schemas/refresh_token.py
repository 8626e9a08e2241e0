"""
Modelo Pydantic para documentos de la colección `refresh_token`.

Nunca contiene el token crudo: solo su hash sha256.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, field_validator

from uncaged.core.time import as_utc, to_bson


class RefreshTokenRecord(BaseModel):
    id: Optional[str] = None  # ObjectId en string; None antes de insertar
    user_id: str  # ObjectId en string
    token_hash: str
    created_at: datetime
    expires_at: datetime
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None

    @field_validator("created_at", "expires_at", "last_used_at", "revoked_at")
    @classmethod
    def _aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at > as_utc(now)

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "RefreshTokenRecord":
        return cls(
            id=str(doc["_id"]),
            user_id=str(doc["user_id"]),
            token_hash=doc["token_hash"],
            created_at=doc["created_at"],
            expires_at=doc["expires_at"],
            last_used_at=doc.get("last_used_at"),
            revoked_at=doc.get("revoked_at"),
            revoked_reason=doc.get("revoked_reason"),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "user_id": ObjectId(self.user_id),
            "token_hash": self.token_hash,
            "created_at": to_bson(self.created_at),
            "expires_at": to_bson(self.expires_at),
            "last_used_at": to_bson(self.last_used_at) if self.last_used_at else None,
            "revoked_at": to_bson(self.revoked_at) if self.revoked_at else None,
            "revoked_reason": self.revoked_reason,
        }
