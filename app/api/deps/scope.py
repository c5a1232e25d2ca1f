# app/api/deps/scope.py
from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Query

from app.core.errors import Forbidden
from app.core.security import get_current_user
from app.models.user import User, Role


def resolve_institution_scope(user: User, requested: UUID | None = None) -> UUID | None:
    """
    Institución sobre la que puede consultar el usuario.
    - ADMIN: global (None) salvo que pida una concreta.
    - INSTITUTION_ADMIN: siempre la suya; pedir otra es 403.
    """
    if user.role == Role.ADMIN:
        return requested
    if user.role == Role.INSTITUTION_ADMIN:
        if requested is not None and requested != user.institution_id:
            raise Forbidden("No puedes consultar otra institución")
        return user.institution_id
    raise Forbidden("Solo administradores")


def institution_scope(
    institution_id: UUID | None = Query(None, alias="institutionId"),
    user: User = Depends(get_current_user),
) -> UUID | None:
    return resolve_institution_scope(user, institution_id)
