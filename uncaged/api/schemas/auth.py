"""
Esquemas Pydantic para operaciones de autenticación.

- JSON en camelCase (contrato del cliente móvil); atributos en snake_case.
- Normaliza email (trim + minúsculas) y valida la política de contraseñas.
"""
import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

PASSWORD_REGEX = re.compile(r"^(?=.{8,})(?=.*\d)(?=.*[a-z])(?=.*[A-Z]).*$")
PASSWORD_ERROR_MESSAGE = "Password must be at least 8 characters with 1 uppercase, 1 lowercase, and 1 digit"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_password(v: str) -> str:
    if not PASSWORD_REGEX.match(v):
        raise ValueError(PASSWORD_ERROR_MESSAGE)
    return v


class EmailPayload(CamelModel):
    # email-validator ya rechaza direcciones de más de 254 caracteres
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class LoginPayload(EmailPayload):
    password: str

    @field_validator("password")
    @classmethod
    def _password_policy(cls, v: str) -> str:
        return _check_password(v)


class RefreshPayload(CamelModel):
    # Opcional para que el servicio responda REFRESH_TOKEN_REQUIRED y no VALIDATION_ERROR
    refresh_token: str = ""


class LogoutPayload(CamelModel):
    refresh_token: str = ""


class ForgotPasswordPayload(EmailPayload):
    pass


class CheckCodePayload(EmailPayload):
    code: str = Field(min_length=1, max_length=12)


class ResetPasswordPayload(CheckCodePayload):
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password_policy(cls, v: str) -> str:
        return _check_password(v)


# === Response models ===

class TokenPairOut(CamelModel):
    access_token: str
    refresh_token: str


class MeOut(CamelModel):
    id: str
    is_admin: bool


class RevokedSessionsOut(CamelModel):
    revoked: int
