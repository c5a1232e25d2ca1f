# app/services/exports.py
"""
Exportación de resultados de una encuesta: una fila por encuestado
(usuarios con al menos una respuesta) y una columna por pregunta.
"""
from __future__ import annotations

import csv
import io
import re
from io import BytesIO
from typing import Iterator
from uuid import UUID

from openpyxl import Workbook
from sqlalchemy.orm import Session

from app.models.answer import Answer
from app.models.survey import Question, QuestionType, Survey
from app.models.user import User
from app.services.surveys import list_questions

BASE_HEADERS = ["UserID", "Nombre", "Email"]
MULTI_SEPARATOR = ", "


def _answer_text(question: Question, answer: Answer | None) -> str:
    if answer is None:
        return ""
    if question.type == QuestionType.TEXT:
        return answer.value or ""
    return MULTI_SEPARATOR.join(answer.options or [])


def results_table(db: Session, survey: Survey) -> tuple[list[str], list[list[str]]]:
    """(encabezados, filas) listos para CSV/XLSX."""
    questions = list_questions(db, survey.id)
    headers = BASE_HEADERS + [q.text for q in questions]
    if not questions:
        return headers, []

    by_user: dict[UUID, dict[UUID, Answer]] = {}
    rows = (
        db.query(Answer)
        .filter(Answer.question_id.in_([q.id for q in questions]))
        .order_by(Answer.created_at)
        .all()
    )
    for a in rows:
        by_user.setdefault(a.user_id, {})[a.question_id] = a

    users = {
        u.id: u for u in db.query(User).filter(User.id.in_(list(by_user))).all()
    } if by_user else {}

    table = []
    for uid in sorted(by_user, key=lambda x: (users[x].name.lower(), str(x))):
        u = users[uid]
        answers = by_user[uid]
        table.append(
            [str(u.id), u.name, u.email] + [_answer_text(q, answers.get(q.id)) for q in questions]
        )
    return headers, table


def export_filename(survey: Survey, ext: str) -> str:
    safe = re.sub(r"\s+", "_", survey.title.strip())
    safe = re.sub(r"[^\w\-]", "", safe, flags=re.ASCII) or "encuesta"
    return f"resultados-{safe}.{ext}"


def stream_csv(headers: list[str], rows: list[list[str]]) -> Iterator[str]:
    """Genera el CSV línea por línea (comillas dobladas al estilo RFC 4180)."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(headers)
    yield output.getvalue()
    output.seek(0)
    output.truncate(0)
    for r in rows:
        writer.writerow(r)
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)


def build_xlsx(survey: Survey, headers: list[str], rows: list[list[str]]) -> bytes:
    wb = Workbook()
    ws_res = wb.active
    ws_res.title = "Resumen"
    ws_res.append(["encuesta", "inicio", "fin", "encuestados", "preguntas"])
    ws_res.append([
        survey.title,
        survey.start_date.strftime("%Y-%m-%d"),
        survey.end_date.strftime("%Y-%m-%d"),
        len(rows),
        len(headers) - len(BASE_HEADERS),
    ])

    ws = wb.create_sheet("Respuestas")
    ws.append(headers)
    for r in rows:
        ws.append(r)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
