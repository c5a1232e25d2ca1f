# app/services/processes.py
"""
Procesos (Valoración / Procedimiento): agrupan grupos y encuestas de una
institución. Cada proceso recibe un código correlativo al crearse.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, InvalidInput, NotFound
from app.models.group import Group
from app.models.process import Process, ProcessType
from app.models.survey import Survey
from app.models.user import User, Role
from app.services.access import ensure_can_manage_group, ensure_can_manage_survey

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


def get_process_or_404(db: Session, process_id: UUID) -> Process:
    p = db.get(Process, process_id)
    if not p:
        raise NotFound("Proceso no encontrado")
    return p


def ensure_process_creator(user: User, process: Process) -> None:
    if process.created_by != user.id:
        raise Forbidden("Solo el creador del proceso puede modificarlo")


def next_code(db: Session) -> int:
    return (db.query(func.max(Process.code)).scalar() or 0) + 1


def _load_groups(db: Session, actor: User, ids: Sequence[UUID]) -> list[Group]:
    ids = list(dict.fromkeys(ids))
    if not ids:
        return []
    found = {g.id: g for g in db.query(Group).filter(Group.id.in_(ids)).all()}
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise NotFound(f"Grupos no encontrados: {missing}")
    for g in found.values():
        ensure_can_manage_group(actor, g)
    return [found[i] for i in ids]


def _load_surveys(db: Session, actor: User, ids: Sequence[UUID]) -> list[Survey]:
    ids = list(dict.fromkeys(ids))
    if not ids:
        return []
    found = {s.id: s for s in db.query(Survey).filter(Survey.id.in_(ids)).all()}
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise NotFound(f"Encuestas no encontradas: {missing}")
    for s in found.values():
        ensure_can_manage_survey(actor, s)
    return [found[i] for i in ids]


def visible_processes(db: Session, user: User, institution_id: Optional[UUID] = None) -> list[Process]:
    q = db.query(Process)
    if user.role == Role.ADMIN:
        if institution_id is not None:
            q = q.filter(Process.institution_id == institution_id)
    else:
        q = q.filter((Process.institution_id == user.institution_id) | (Process.created_by == user.id))
    return q.order_by(Process.code).all()


def create_process(
    db: Session,
    actor: User,
    *,
    name: str,
    type: ProcessType,
    group_ids: Sequence[UUID] = (),
    survey_ids: Sequence[UUID] = (),
) -> Process:
    if actor.institution_id is None:
        raise InvalidInput("No puedes crear un proceso sin estar asignado a una institución")
    groups = _load_groups(db, actor, group_ids)
    surveys = _load_surveys(db, actor, survey_ids)

    # código = max + 1; si otra petición lo tomó, se reintenta con el siguiente
    for _ in range(MAX_CODE_ATTEMPTS):
        process = Process(
            code=next_code(db),
            name=name.strip(),
            type=type,
            institution_id=actor.institution_id,
            created_by=actor.id,
            groups=groups,
            surveys=surveys,
        )
        try:
            with db.begin_nested():
                db.add(process)
        except IntegrityError:
            logger.warning("Process code %s already taken, retrying", process.code)
            continue
        logger.info("Process %s (code %s) created by %s", process.id, process.code, actor.id)
        return process
    raise RuntimeError("No se pudo asignar un código de proceso")


def update_process(
    db: Session,
    process_id: UUID,
    actor: User,
    *,
    name: Optional[str] = None,
    type: Optional[ProcessType] = None,
    group_ids: Optional[Sequence[UUID]] = None,
    survey_ids: Optional[Sequence[UUID]] = None,
) -> Process:
    process = get_process_or_404(db, process_id)
    ensure_process_creator(actor, process)
    if name is not None:
        process.name = name.strip()
    if type is not None:
        process.type = type
    if group_ids is not None:
        process.groups = _load_groups(db, actor, group_ids)
    if survey_ids is not None:
        process.surveys = _load_surveys(db, actor, survey_ids)
    db.flush()
    return process


def delete_process(db: Session, process_id: UUID, actor: User) -> None:
    process = get_process_or_404(db, process_id)
    ensure_process_creator(actor, process)
    db.delete(process)
    db.flush()
    logger.info("Process %s deleted by %s", process_id, actor.id)
