# app/services/assignments.py
"""
Fan-out de asignaciones: garantiza que cada usuario objetivo tenga
exactamente una SurveyAssignment para la encuesta.

1) resolver ids objetivo  2) leer asignaciones existentes de esos ids
3) diferencia  4) crear PENDING con due_date = end_date de la encuesta.

Dos fan-outs simultáneos pueden ver "no asignado" a la vez. La restricción
única (user_id, survey_id) de la BD decide; cada inserción va en su propio
SAVEPOINT y un IntegrityError se registra y se salta sin abortar el lote.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, InvalidInput
from app.models.assignment import SurveyAssignment, AssignmentStatus
from app.models.group import Group, GroupMember, GroupSurvey, DeactivatedGroup
from app.models.survey import Survey
from app.models.user import User, Role
from app.services.access import (
    get_survey_or_404, ensure_can_manage_survey, get_group_or_404, ensure_can_manage_group,
    get_institution_or_404,
)

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    survey_id: UUID
    target: str
    target_count: int
    already_assigned: int
    created: int
    message: str


# -------------------- objetivos -------------------- #

def institution_student_ids(db: Session, institution_id: UUID) -> list[UUID]:
    rows = (
        db.query(User.id)
        .filter(User.institution_id == institution_id, User.role == Role.STUDENT, User.status == "activo")
        .order_by(User.created_at)
        .all()
    )
    return [uid for (uid,) in rows]


def group_active_member_ids(db: Session, group_id: UUID) -> list[UUID]:
    """Miembros que no han abandonado el grupo."""
    left = db.query(DeactivatedGroup.user_id).filter(DeactivatedGroup.group_id == group_id)
    rows = (
        db.query(GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.user_id.not_in(left))
        .order_by(GroupMember.joined_at)
        .all()
    )
    return [uid for (uid,) in rows]


# -------------------- núcleo -------------------- #

def insert_assignments(
    db: Session,
    survey: Survey,
    user_ids: Iterable[UUID],
    *,
    group_id: Optional[UUID] = None,
) -> int:
    """Crea asignaciones PENDING; los duplicados (carrera) se ignoran. Devuelve cuántas se crearon."""
    created = 0
    for uid in user_ids:
        try:
            with db.begin_nested():
                db.add(SurveyAssignment(
                    user_id=uid,
                    survey_id=survey.id,
                    group_id=group_id,
                    status=AssignmentStatus.PENDING,
                    due_date=survey.end_date,
                ))
        except IntegrityError:
            logger.warning("Assignment for user %s / survey %s already exists, skipping", uid, survey.id)
            continue
        created += 1
    return created


def fan_out(
    db: Session,
    survey: Survey,
    user_ids: Iterable[UUID],
    *,
    target: str,
    group_id: Optional[UUID] = None,
) -> FanOutResult:
    # dedup conservando orden
    targets = list(dict.fromkeys(user_ids))
    if not targets:
        return FanOutResult(
            survey_id=survey.id, target=target, target_count=0, already_assigned=0, created=0,
            message="No hay usuarios a quienes asignar la encuesta",
        )

    existing = {
        uid
        for (uid,) in db.query(SurveyAssignment.user_id)
        .filter(SurveyAssignment.survey_id == survey.id, SurveyAssignment.user_id.in_(targets))
        .all()
    }
    to_add = [uid for uid in targets if uid not in existing]
    created = insert_assignments(db, survey, to_add, group_id=group_id) if to_add else 0

    if created:
        message = f"Encuesta asignada a {created} usuario(s)"
    else:
        message = "Todos los usuarios ya tenían la encuesta asignada"

    logger.info(
        "Fan-out survey=%s target=%s: %d targets, %d already assigned, %d created",
        survey.id, target, len(targets), len(existing), created,
    )
    return FanOutResult(
        survey_id=survey.id, target=target, target_count=len(targets),
        already_assigned=len(existing), created=created, message=message,
    )


def assign_user(db: Session, survey: Survey, user_id: UUID, *, group_id: Optional[UUID] = None) -> bool:
    return fan_out(db, survey, [user_id], target=f"user:{user_id}", group_id=group_id).created == 1


# -------------------- casos de uso -------------------- #

def assign_to_institution(
    db: Session,
    survey_id: UUID,
    actor: User,
    institution_id: Optional[UUID] = None,
) -> FanOutResult:
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)

    institution_id = institution_id or survey.institution_id or actor.institution_id
    if institution_id is None:
        raise InvalidInput("Debe indicar la institución destino")
    if actor.role != Role.ADMIN and institution_id != actor.institution_id:
        raise Forbidden("Solo puedes asignar a tu institución")

    institution = get_institution_or_404(db, institution_id)

    return fan_out(
        db, survey, institution_student_ids(db, institution.id), target=f"institution:{institution.id}"
    )


def link_survey_to_group(db: Session, group: Group, survey: Survey) -> bool:
    exists = (
        db.query(GroupSurvey)
        .filter(GroupSurvey.group_id == group.id, GroupSurvey.survey_id == survey.id)
        .first()
    )
    if exists:
        return False
    db.add(GroupSurvey(group_id=group.id, survey_id=survey.id))
    db.flush()
    return True


def assign_to_group(db: Session, survey_id: UUID, group_id: UUID, actor: User) -> FanOutResult:
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)
    group = get_group_or_404(db, group_id)
    ensure_can_manage_group(actor, group)

    link_survey_to_group(db, group, survey)
    return fan_out(
        db, survey, group_active_member_ids(db, group.id), target=f"group:{group.id}", group_id=group.id
    )


def link_surveys_to_group(db: Session, group_id: UUID, survey_ids: list[UUID], actor: User) -> list[FanOutResult]:
    group = get_group_or_404(db, group_id)
    ensure_can_manage_group(actor, group)

    results = []
    for sid in dict.fromkeys(survey_ids):
        survey = get_survey_or_404(db, sid)
        ensure_can_manage_survey(actor, survey)
        link_survey_to_group(db, group, survey)
        results.append(fan_out(
            db, survey, group_active_member_ids(db, group.id), target=f"group:{group.id}", group_id=group.id
        ))
    return results
