from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.core.passwords import MAX_PASSWORD_BYTES
from app.models.user import Role
from app.schemas.common import CamelModel


def _check_password(v: str) -> str:
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"La contraseña no puede superar {MAX_PASSWORD_BYTES} bytes")
    return v


class RegisterIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    identification: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=30)
    email: EmailStr
    password: str = Field(min_length=6)
    institution_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("El nombre es obligatorio")
        return v

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password(v)


class LoginIn(CamelModel):
    email: EmailStr
    password: str


class ForgotPasswordIn(CamelModel):
    email: EmailStr


class ForgotPasswordOut(CamelModel):
    message: str
    # solo en ENV=dev (no hay envío de correo)
    reset_token: Optional[str] = None


class ResetPasswordIn(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return _check_password(v)


class UserOut(CamelModel):
    id: UUID
    name: str
    email: str
    role: Role
    identification: Optional[str] = None
    phone: Optional[str] = None
    institution_id: Optional[UUID] = None
    status: str
    created_at: datetime


class AuthOut(CamelModel):
    user: UserOut
    token: str
    token_type: str = "bearer"
