"""Configuración central de la aplicación (Pydantic Settings).

- Carga variables desde .env en la raíz del proyecto.
- Agrupa ajustes por área: App, CORS, Mongo, Auth/JWT, Hash, Reset, Email, Rate limit.
- `jwt_secret` es obligatorio: sin él la app no arranca.
"""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resuelve el .env ubicado en la raíz del proyecto (independiente del CWD)
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """Variables de configuración con valores por defecto razonables.

    Los valores pueden sobreescribirse vía variables de entorno (.env).
    """
    # App
    app_name: str = "unCaged API"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # CORS (cliente Expo / web en localhost)
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:19006"]
    cors_allow_any: bool = False

    # Mongo
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "uncaged"
    mongo_tls: bool = False
    # TLS relax options (dev only)
    mongo_tls_insecure: bool = False
    mongo_tls_allow_invalid_hostnames: bool = False

    # Auth / JWT
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(15, ge=1, le=1440)
    refresh_token_expire_days: int = Field(30, ge=1, le=365)

    # Argon2 (contraseñas y códigos de reseteo)
    argon2_time_cost: int = 2
    argon2_memory_cost: int = 51200
    argon2_parallelism: int = 2

    # Reseteo de contraseña por código (OTP)
    reset_code_expire_minutes: int = Field(15, ge=1)
    reset_code_length: int = Field(6, ge=4, le=12)

    # Email / SMTP
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_from_email: str | None = None
    smtp_from_name: str = "unCaged"
    smtp_use_tls: bool = True
    smtp_timeout_seconds: int = 10

    # Rate limit de endpoints de auth (por IP + ruta)
    rate_limit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # no fallar si hay variables no usadas
    )

    @field_validator("jwt_secret")
    @classmethod
    def _require_secret(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_SECRET es obligatorio")
        return v

    # --- Utilidades derivadas / helpers ---
    @property
    def api_prefix_normalized(self) -> str:
        """Devuelve `api_prefix` con formato consistente.

        - Siempre inicia con '/'
        - Sin '/' final (excepto cuando es solo '/')
        - Si está vacío, devuelve ""
        """
        pref = (self.api_prefix or "").strip()
        if not pref:
            return ""
        if not pref.startswith('/'):
            pref = '/' + pref
        if len(pref) > 1 and pref.endswith('/'):
            pref = pref[:-1]
        return pref

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


@lru_cache
def get_settings() -> Settings:
    """Settings del proceso; se construyen una vez y no se mutan después."""
    return Settings()
