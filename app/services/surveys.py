# app/services/surveys.py
from __future__ import annotations

import logging
from collections import Counter
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidInput
from app.core.timeutils import as_utc, utcnow
from app.models.answer import Answer
from app.models.assignment import SurveyAssignment, AssignmentStatus
from app.models.group import GroupSurvey
from app.models.process import ProcessSurvey
from app.models.survey import Survey, Question, QuestionType
from app.models.user import User, Role
from app.services.access import (
    get_survey_or_404, get_question_or_404, get_group_or_404, ensure_can_manage_survey,
)
from app.services.assignments import assign_user
from app.services.completion import question_counts

logger = logging.getLogger(__name__)


# -------------------- encuestas -------------------- #

def create_survey(db: Session, actor: User, *, title: str, description: Optional[str], start_date, end_date) -> Survey:
    survey = Survey(
        title=title.strip(),
        description=description,
        start_date=start_date,
        end_date=end_date,
        institution_id=actor.institution_id,
        created_by=actor.id,
    )
    db.add(survey)
    db.flush()
    # el creador queda asignado (PENDING, due = end_date)
    assign_user(db, survey, actor.id)
    logger.info("Survey %s created by %s", survey.id, actor.id)
    return survey


def update_survey(
    db: Session,
    survey_id: UUID,
    actor: User,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    end_date=None,
) -> Survey:
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)

    if title is not None:
        survey.title = title.strip()
    if description is not None:
        survey.description = description
    if end_date is not None:
        if as_utc(end_date) < as_utc(survey.start_date):
            raise InvalidInput("La fecha de cierre no puede ser anterior a la de inicio")
        survey.end_date = end_date
        # la fecha límite de cada asignación refleja la de la encuesta
        db.query(SurveyAssignment).filter(SurveyAssignment.survey_id == survey.id).update(
            {SurveyAssignment.due_date: end_date}, synchronize_session=False
        )
    db.flush()
    return survey


def delete_survey(db: Session, survey_id: UUID, actor: User) -> None:
    """Borra respuestas, asignaciones, vínculos a grupos, preguntas y la encuesta."""
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)

    question_ids = db.query(Question.id).filter(Question.survey_id == survey.id)
    n_answers = db.query(Answer).filter(Answer.question_id.in_(question_ids)).delete(synchronize_session=False)
    n_assign = db.query(SurveyAssignment).filter(SurveyAssignment.survey_id == survey.id).delete(
        synchronize_session=False
    )
    db.query(GroupSurvey).filter(GroupSurvey.survey_id == survey.id).delete(synchronize_session=False)
    db.query(ProcessSurvey).filter(ProcessSurvey.survey_id == survey.id).delete(synchronize_session=False)
    db.query(Question).filter(Question.survey_id == survey.id).delete(synchronize_session=False)
    db.delete(survey)
    db.flush()
    logger.info("Survey %s deleted (%d answers, %d assignments)", survey_id, n_answers, n_assign)


def visible_surveys(db: Session, user: User, institution_id: Optional[UUID] = None) -> list[Survey]:
    """ADMIN: todas (o de una institución). Resto: globales + su institución."""
    q = db.query(Survey)
    if user.role == Role.ADMIN:
        if institution_id is not None:
            q = q.filter(Survey.institution_id == institution_id)
    else:
        q = q.filter((Survey.institution_id.is_(None)) | (Survey.institution_id == user.institution_id))
    return q.order_by(Survey.created_at.desc()).all()


def group_linked_survey_ids(db: Session, group_id: UUID) -> set[UUID]:
    get_group_or_404(db, group_id)
    return {sid for (sid,) in db.query(GroupSurvey.survey_id).filter(GroupSurvey.group_id == group_id).all()}


def active_assignments(db: Session, user: User) -> list[SurveyAssignment]:
    """Asignaciones del usuario, sin las que llegaron por grupos que abandonó."""
    q = db.query(SurveyAssignment).filter(SurveyAssignment.user_id == user.id)
    left = user.deactivated_group_ids
    if left:
        q = q.filter((SurveyAssignment.group_id.is_(None)) | (SurveyAssignment.group_id.not_in(left)))
    return q.order_by(SurveyAssignment.created_at.desc()).all()


def survey_question_counts(db: Session, surveys: list[Survey]) -> dict[UUID, int]:
    return question_counts(db, [s.id for s in surveys]) if surveys else {}


# -------------------- preguntas -------------------- #

def has_responses(db: Session, survey_id: UUID) -> bool:
    answered = (
        db.query(Answer.id)
        .join(Question, Question.id == Answer.question_id)
        .filter(Question.survey_id == survey_id)
        .first()
    )
    if answered:
        return True
    completed = (
        db.query(SurveyAssignment.id)
        .filter(SurveyAssignment.survey_id == survey_id, SurveyAssignment.status == AssignmentStatus.COMPLETED)
        .first()
    )
    return completed is not None


def add_question(db: Session, survey_id: UUID, actor: User, *, text: str, type: QuestionType, options: list[str]) -> Question:
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)
    # una pregunta nueva cambiaría el conteo de quienes ya completaron
    if has_responses(db, survey.id):
        raise Conflict("La encuesta ya tiene respuestas; no se pueden agregar preguntas")
    q = Question(
        survey_id=survey.id,
        text=text.strip(),
        type=type,
        options=list(options) if type != QuestionType.TEXT else [],
        created_at=utcnow(),
    )
    db.add(q)
    db.flush()
    return q


def list_questions(db: Session, survey_id: UUID) -> list[Question]:
    get_survey_or_404(db, survey_id)
    return (
        db.query(Question)
        .filter(Question.survey_id == survey_id)
        .order_by(Question.created_at.asc(), Question.id)
        .all()
    )


def update_question(
    db: Session, survey_id: UUID, question_id: UUID, actor: User, *, text: str, type: QuestionType, options: list[str]
) -> Question:
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)
    q = get_question_or_404(db, survey_id, question_id)
    new_options = list(options) if type != QuestionType.TEXT else []
    if type != q.type or new_options != list(q.options or []):
        if db.query(Answer.id).filter(Answer.question_id == q.id).first():
            raise Conflict("La pregunta ya tiene respuestas; solo se puede cambiar el texto")
    q.text = text.strip()
    q.type = type
    q.options = new_options
    db.flush()
    return q


def answer_history(db: Session, user: User, survey_id: UUID) -> list[tuple[Answer, Question]]:
    """Respuestas propias en la encuesta, las más recientes primero."""
    get_survey_or_404(db, survey_id)
    return (
        db.query(Answer, Question)
        .join(Question, Question.id == Answer.question_id)
        .filter(Question.survey_id == survey_id, Answer.user_id == user.id)
        .order_by(Answer.created_at.desc(), Question.created_at.asc())
        .all()
    )


# -------------------- resultados -------------------- #

def survey_results(db: Session, survey_id: UUID, actor: User) -> dict:
    """TEXT: lista de respuestas. Selección: conteo por opción."""
    survey = get_survey_or_404(db, survey_id)
    ensure_can_manage_survey(actor, survey)
    questions = list_questions(db, survey.id)

    answers_by_q: dict[UUID, list[Answer]] = {q.id: [] for q in questions}
    for a in db.query(Answer).filter(Answer.question_id.in_(list(answers_by_q))).order_by(Answer.created_at).all():
        answers_by_q[a.question_id].append(a)

    respondents = (
        db.query(func.count(func.distinct(Answer.user_id)))
        .filter(Answer.question_id.in_(list(answers_by_q)))
        .scalar()
    ) or 0

    out = []
    for q in questions:
        rows = answers_by_q[q.id]
        item = {"question_id": q.id, "text": q.text, "type": q.type, "total_answers": len(rows)}
        if q.type == QuestionType.TEXT:
            item["answers"] = [a.value for a in rows if a.value]
        else:
            counts = Counter({opt: 0 for opt in (q.options or [])})
            for a in rows:
                counts.update(a.options or [])
            item["option_counts"] = dict(counts)
        out.append(item)

    return {"survey_id": survey.id, "title": survey.title, "respondents": int(respondents), "questions": out}
