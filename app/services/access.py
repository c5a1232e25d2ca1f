# app/services/access.py
from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound
from app.models.assignment import SurveyAssignment
from app.models.group import Group
from app.models.institution import Institution
from app.models.survey import Survey, Question
from app.models.user import User, Role


def get_survey_or_404(db: Session, survey_id: UUID) -> Survey:
    s = db.get(Survey, survey_id)
    if not s:
        raise NotFound("Encuesta no encontrada")
    return s


def get_question_or_404(db: Session, survey_id: UUID, question_id: UUID) -> Question:
    q = db.query(Question).filter(Question.id == question_id, Question.survey_id == survey_id).first()
    if not q:
        raise NotFound("Pregunta no encontrada en esta encuesta")
    return q


def get_group_or_404(db: Session, group_id: UUID) -> Group:
    g = db.get(Group, group_id)
    if not g:
        raise NotFound("Grupo no encontrado")
    return g


def get_institution_or_404(db: Session, institution_id: UUID) -> Institution:
    inst = db.get(Institution, institution_id)
    if not inst:
        raise NotFound("Institución no encontrada")
    return inst


def get_user_or_404(db: Session, user_id: UUID) -> User:
    u = db.get(User, user_id)
    if not u:
        raise NotFound("Usuario no encontrado")
    return u


def ensure_can_manage_survey(user: User, survey: Survey) -> None:
    """ADMIN gestiona todo; INSTITUTION_ADMIN las globales y las de su institución."""
    if user.role == Role.ADMIN:
        return
    if user.role == Role.INSTITUTION_ADMIN and (
        survey.institution_id is None or survey.institution_id == user.institution_id
    ):
        return
    raise Forbidden("No tienes permisos sobre esta encuesta")


def ensure_can_view_survey(db: Session, user: User, survey: Survey) -> None:
    """ADMIN ve todo; el resto las globales, las de su institución y las que tiene asignadas."""
    if user.role == Role.ADMIN or survey.institution_id is None:
        return
    if survey.institution_id == user.institution_id:
        return
    assigned = (
        db.query(SurveyAssignment.id)
        .filter(SurveyAssignment.user_id == user.id, SurveyAssignment.survey_id == survey.id)
        .first()
    )
    if assigned:
        return
    raise Forbidden("Esta encuesta pertenece a otra institución")


def ensure_can_manage_group(user: User, group: Group) -> None:
    """Creador, ADMIN o INSTITUTION_ADMIN de la institución del grupo."""
    if group.created_by == user.id or user.role == Role.ADMIN:
        return
    if user.role == Role.INSTITUTION_ADMIN and group.institution_id is not None \
            and group.institution_id == user.institution_id:
        return
    raise Forbidden("No tienes permisos sobre este grupo")


def ensure_group_creator(user: User, group: Group) -> None:
    if group.created_by != user.id:
        raise Forbidden("Solo el creador del grupo puede realizar esta acción")
