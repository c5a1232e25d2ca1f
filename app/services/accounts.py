# app/services/accounts.py
"""Registro, login, recuperación de contraseña y gestión de cuentas."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, Forbidden, InvalidInput, NotFound, Unauthenticated
from app.core.passwords import generate_reset_token, hash_password, hash_token, verify_password
from app.core.timeutils import as_utc, utcnow
from app.models.answer import Answer
from app.models.assignment import SurveyAssignment
from app.models.group import GroupMember
from app.models.institution import Institution
from app.models.user import User, Role
from app.services.access import get_institution_or_404, get_user_or_404
from app.services.institutions import get_or_create_default

logger = logging.getLogger(__name__)


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def register(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    identification: Optional[str] = None,
    phone: Optional[str] = None,
    institution_id: Optional[UUID] = None,
) -> User:
    if find_by_email(db, email):
        raise Conflict("El correo ya está registrado")

    if institution_id is not None:
        institution = get_institution_or_404(db, institution_id)
    else:
        institution = get_or_create_default(db)

    user = User(
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        identification=identification,
        phone=phone,
        role=Role.STUDENT,
        institution_id=institution.id,
    )
    db.add(user)
    db.flush()
    logger.info("User %s registered in institution %s", user.id, institution.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = find_by_email(db, email)
    if not user or user.status != "activo" or not verify_password(password, user.password_hash):
        raise Unauthenticated("Credenciales inválidas")
    return user


def request_password_reset(db: Session, email: str) -> Optional[str]:
    """Devuelve el token en claro (solo se guarda su hash) o None si el correo no existe."""
    user = find_by_email(db, email)
    if not user:
        logger.info("Password reset requested for unknown email")
        return None
    token = generate_reset_token()
    user.reset_token_hash = hash_token(token)
    user.reset_token_expires_at = utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    db.flush()
    logger.info("Password reset token issued for user %s", user.id)
    return token


def reset_password(db: Session, token: str, new_password: str) -> User:
    user = db.query(User).filter(User.reset_token_hash == hash_token(token)).first()
    expires = as_utc(user.reset_token_expires_at) if user else None
    if not user or expires is None or expires < utcnow():
        raise InvalidInput("Token inválido o expirado")
    user.password_hash = hash_password(new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    db.flush()
    logger.info("Password reset completed for user %s", user.id)
    return user


def set_institution_by_name(db: Session, user: User, institution_name: str) -> User:
    inst = (
        db.query(Institution)
        .filter(func.lower(Institution.name) == institution_name.strip().lower())
        .first()
    )
    if not inst:
        raise NotFound("Institución no encontrada")
    user.institution_id = inst.id
    db.flush()
    return user


def users_of_institution(db: Session, institution_id: UUID) -> list[User]:
    get_institution_or_404(db, institution_id)
    return db.query(User).filter(User.institution_id == institution_id).order_by(User.name).all()


def change_role(db: Session, user_id: UUID, role: Role, actor: User) -> User:
    if actor.role != Role.ADMIN:
        raise Forbidden("Solo el administrador general puede cambiar roles")
    user = get_user_or_404(db, user_id)
    user.role = role
    db.flush()
    logger.info("User %s role set to %s by %s", user.id, role.value, actor.id)
    return user


def delete_account(db: Session, user: User) -> None:
    """Borrado definitivo de la propia cuenta con todo su historial."""
    uid = user.id
    db.query(Answer).filter(Answer.user_id == uid).delete(synchronize_session=False)
    db.query(SurveyAssignment).filter(SurveyAssignment.user_id == uid).delete(synchronize_session=False)
    db.query(GroupMember).filter(GroupMember.user_id == uid).delete(synchronize_session=False)
    # grupos desactivados caen por cascade de la relación
    db.delete(user)
    db.flush()
    logger.info("User %s deleted their account", uid)
