# app/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.errors import Unauthenticated, Forbidden
from app.db.session import get_db
from app.models.user import User, Role

# Solo para docs/Swagger; auto_error=False para devolver nuestro propio 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def create_access_token(subject: dict[str, Any], expires_minutes: int | None = None) -> str:
    """
    Genera un JWT con 'exp' e 'iat'.
    - 'sub' se normaliza a str.
    - 'iat' se pone como epoch seconds (int) para comparaciones.
    """
    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES

    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    claims = dict(subject)
    if "sub" in claims and not isinstance(claims["sub"], str):
        claims["sub"] = str(claims["sub"])

    to_encode = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": exp,  # PyJWT acepta datetime tz-aware
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def token_for(user: User) -> str:
    return create_access_token({"sub": user.id, "role": user.role.value})


def decode_token(token: str) -> dict[str, Any]:
    """
    Decodifica exigiendo 'exp' e 'iat' y verificando expiración.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "iat"], "verify_exp": True},
            leeway=5,  # pequeño margen por skew de reloj
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expirado")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Token inválido")


def get_current_user(token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Devuelve el User activo dueño del token, con sus grupos desactivados cargados.
    """
    if not token:
        raise Unauthenticated("Token requerido")

    payload = decode_token(token)
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Token sin sujeto")

    try:
        user_id = UUID(str(sub))
    except ValueError:
        raise Unauthenticated("Token con 'sub' inválido")

    user = (
        db.query(User)
        .options(selectinload(User.deactivated_groups))
        .filter(User.id == user_id, User.status == "activo")
        .first()
    )
    if not user:
        raise Unauthenticated("Usuario no encontrado o inactivo")
    return user


def get_staff_user(user: User = Depends(get_current_user)) -> User:
    """ADMIN o INSTITUTION_ADMIN."""
    if not user.is_staff:
        raise Forbidden("Solo administradores")
    return user


def get_admin_user(user: User = Depends(get_current_user)) -> User:
    """Solo el administrador global."""
    if user.role != Role.ADMIN:
        raise Forbidden("Solo el administrador general")
    return user
