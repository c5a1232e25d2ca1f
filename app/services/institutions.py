# app/services/institutions.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, Forbidden
from app.models.institution import Institution
from app.models.user import User, Role
from app.services.access import get_institution_or_404

logger = logging.getLogger(__name__)


def _name_taken(db: Session, name: str, exclude_id: Optional[UUID] = None) -> bool:
    q = db.query(Institution.id).filter(func.lower(Institution.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Institution.id != exclude_id)
    return q.first() is not None


def create_institution(db: Session, actor: User, *, name: str, description: Optional[str]) -> Institution:
    if _name_taken(db, name):
        raise Conflict("Ya existe una institución con ese nombre")
    inst = Institution(name=name.strip(), description=description, owner_id=actor.id)
    db.add(inst)
    db.flush()
    # quien la crea y no tiene institución pasa a pertenecer a ella
    if actor.institution_id is None:
        actor.institution_id = inst.id
    db.flush()
    logger.info("Institution %s (%s) created by %s", inst.id, inst.name, actor.id)
    return inst


def update_institution(
    db: Session, institution_id: UUID, actor: User, *, name: Optional[str], description: Optional[str]
) -> Institution:
    inst = get_institution_or_404(db, institution_id)
    if actor.role != Role.ADMIN and inst.owner_id != actor.id:
        raise Forbidden("Solo el creador o el administrador general pueden editarla")
    if name is not None:
        if _name_taken(db, name, exclude_id=inst.id):
            raise Conflict("Ya existe una institución con ese nombre")
        inst.name = name.strip()
    if description is not None:
        inst.description = description
    db.flush()
    return inst


def list_institutions(db: Session) -> list[Institution]:
    return db.query(Institution).order_by(Institution.name).all()


def get_or_create_default(db: Session) -> Institution:
    name = settings.DEFAULT_INSTITUTION_NAME
    inst = db.query(Institution).filter(Institution.name == name).first()
    if inst:
        return inst
    inst = Institution(name=name, description="Institución por defecto")
    db.add(inst)
    db.flush()
    logger.info("Default institution '%s' created", name)
    return inst
