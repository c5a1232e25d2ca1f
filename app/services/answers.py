# app/services/answers.py
"""
Registro de respuestas.

Una llamada guarda todas las respuestas y actualiza el estado de la
asignación dentro de la misma unidad de trabajo: o todo o nada.
Las respuestas son inmutables; responder de nuevo una pregunta es 409.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidInput, NotFound
from app.core.timeutils import utcnow
from app.models.answer import Answer
from app.models.assignment import SurveyAssignment, AssignmentStatus
from app.models.survey import Question, QuestionType
from app.models.user import User
from app.services.access import get_survey_or_404
from app.services.completion import answer_count, completions, question_count

logger = logging.getLogger(__name__)


@dataclass
class AnswerItem:
    question_id: UUID
    value: Optional[str] = None
    options: Optional[list[str]] = None


@dataclass
class SubmitResult:
    survey_id: UUID
    created: int
    answered: int
    total_questions: int
    status: AssignmentStatus


def _clean_value(question: Question, item: AnswerItem) -> tuple[Optional[str], Optional[list[str]]]:
    """Valida el contenido según el tipo de pregunta y devuelve (value, options)."""
    if question.type == QuestionType.TEXT:
        value = (item.value or "").strip()
        if not value:
            raise InvalidInput(f"La pregunta '{question.text}' requiere una respuesta de texto")
        return value, None

    selected = [o.strip() for o in (item.options or []) if o and o.strip()]
    # compatibilidad: una opción enviada en 'value'
    if not selected and item.value and item.value.strip():
        selected = [item.value.strip()]
    if not selected:
        raise InvalidInput(f"La pregunta '{question.text}' requiere seleccionar una opción")
    if len(set(selected)) != len(selected):
        raise InvalidInput(f"Opciones repetidas en la pregunta '{question.text}'")
    invalid = [o for o in selected if o not in (question.options or [])]
    if invalid:
        raise InvalidInput(f"Opciones inválidas para la pregunta '{question.text}': {invalid}")
    if question.type == QuestionType.SINGLE_CHOICE and len(selected) != 1:
        raise InvalidInput(f"La pregunta '{question.text}' admite una sola opción")
    return None, selected


def submit_answers(db: Session, user: User, survey_id: UUID, items: Sequence[AnswerItem]) -> SubmitResult:
    if not items:
        raise InvalidInput("Debe enviar al menos una respuesta")

    survey = get_survey_or_404(db, survey_id)

    assignment = (
        db.query(SurveyAssignment)
        .filter(SurveyAssignment.user_id == user.id, SurveyAssignment.survey_id == survey.id)
        .first()
    )
    if not assignment:
        raise NotFound("No tienes esta encuesta asignada")

    ids = [it.question_id for it in items]
    if len(set(ids)) != len(ids):
        raise InvalidInput("Hay preguntas repetidas en el envío")

    questions = {
        q.id: q
        for q in db.query(Question).filter(Question.survey_id == survey.id, Question.id.in_(ids)).all()
    }
    foreign = [str(qid) for qid in ids if qid not in questions]
    if foreign:
        raise InvalidInput(f"Preguntas que no pertenecen a la encuesta: {foreign}")

    already = {
        qid for (qid,) in db.query(Answer.question_id)
        .filter(Answer.user_id == user.id, Answer.question_id.in_(ids))
        .all()
    }
    if already:
        raise Conflict("Ya respondiste algunas de estas preguntas")

    now = utcnow()
    for it in items:
        value, options = _clean_value(questions[it.question_id], it)
        db.add(Answer(user_id=user.id, question_id=it.question_id, value=value, options=options, created_at=now))

    try:
        db.flush()
    except IntegrityError:
        # otra petición del mismo usuario se adelantó
        raise Conflict("Ya respondiste algunas de estas preguntas")

    answered = answer_count(db, user.id, survey.id)
    total = question_count(db, survey.id)
    if assignment.status == AssignmentStatus.PENDING and completions(answered, total) >= 1:
        assignment.status = AssignmentStatus.COMPLETED
        assignment.completed_at = now
        logger.info("Assignment %s completed (user=%s survey=%s)", assignment.id, user.id, survey.id)
    db.flush()

    return SubmitResult(
        survey_id=survey.id,
        created=len(items),
        answered=answered,
        total_questions=total,
        status=assignment.status,
    )
