# app/services/completion.py
"""
Completitud por conteo.

Para un par (usuario, encuesta):
    completions = floor(respuestas a preguntas de la encuesta / preguntas de la encuesta)
Una encuesta sin preguntas cuenta como 0 completadas.

La misma función se usa al registrar respuestas (cambio de estado de la
asignación) y al agregar para el dashboard, así ambos caminos coinciden.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.answer import Answer
from app.models.survey import Question
from app.models.user import User


def completions(answer_count: int, question_count: int) -> int:
    if question_count <= 0:
        return 0
    return answer_count // question_count


def question_count(db: Session, survey_id: UUID) -> int:
    return db.query(func.count(Question.id)).filter(Question.survey_id == survey_id).scalar() or 0


def question_counts(db: Session, survey_ids: Optional[Iterable[UUID]] = None) -> dict[UUID, int]:
    q = db.query(Question.survey_id, func.count(Question.id)).group_by(Question.survey_id)
    if survey_ids is not None:
        q = q.filter(Question.survey_id.in_(list(survey_ids)))
    return {sid: int(n) for sid, n in q.all()}


def answer_count(db: Session, user_id: UUID, survey_id: UUID) -> int:
    return (
        db.query(func.count(Answer.id))
        .join(Question, Question.id == Answer.question_id)
        .filter(Answer.user_id == user_id, Question.survey_id == survey_id)
        .scalar()
    ) or 0


def user_completions(db: Session, user_id: UUID, survey_id: UUID) -> int:
    return completions(answer_count(db, user_id, survey_id), question_count(db, survey_id))


def answer_counts_by_user_survey(
    db: Session,
    *,
    survey_ids: Optional[Iterable[UUID]] = None,
    user_ids: Optional[Iterable[UUID]] = None,
    institution_id: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict[tuple[UUID, UUID], int]:
    """{(user_id, survey_id): nº de respuestas} con los filtros dados."""
    q = (
        db.query(Answer.user_id, Question.survey_id, func.count(Answer.id))
        .join(Question, Question.id == Answer.question_id)
    )
    if survey_ids is not None:
        q = q.filter(Question.survey_id.in_(list(survey_ids)))
    if user_ids is not None:
        q = q.filter(Answer.user_id.in_(list(user_ids)))
    if institution_id is not None:
        q = q.join(User, User.id == Answer.user_id).filter(User.institution_id == institution_id)
    if start is not None:
        q = q.filter(Answer.created_at >= start)
    if end is not None:
        q = q.filter(Answer.created_at <= end)
    rows = q.group_by(Answer.user_id, Question.survey_id).all()
    return {(uid, sid): int(n) for uid, sid, n in rows}


def completions_by_survey(
    db: Session,
    *,
    survey_ids: Optional[Iterable[UUID]] = None,
    user_ids: Optional[Iterable[UUID]] = None,
    institution_id: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict[UUID, int]:
    """Suma de completions por encuesta (ámbito y ventana opcionales)."""
    counts = answer_counts_by_user_survey(
        db, survey_ids=survey_ids, user_ids=user_ids, institution_id=institution_id, start=start, end=end
    )
    qcounts = question_counts(db, {sid for (_, sid) in counts})
    totals: dict[UUID, int] = defaultdict(int)
    for (_, sid), n in counts.items():
        totals[sid] += completions(n, qcounts.get(sid, 0))
    return dict(totals)


def total_completions(db: Session, **filters) -> int:
    return sum(completions_by_survey(db, **filters).values())
