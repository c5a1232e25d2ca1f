from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from app.models.assignment import AssignmentStatus
from app.models.survey import QuestionType
from app.schemas.common import CamelModel


# ---------- Encuestas ----------

class SurveyCreateIn(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate debe ser posterior a startDate")
        return self


class SurveyUpdateIn(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    end_date: Optional[datetime] = None


class SurveyOut(CamelModel):
    id: UUID
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    institution_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    question_count: int = 0
    # solo cuando se consulta con ?groupId=
    is_assigned: Optional[bool] = None


# ---------- Preguntas ----------

class QuestionIn(CamelModel):
    text: str = Field(min_length=1)
    type: QuestionType
    options: List[str] = []

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_options(self):
        if self.type == QuestionType.TEXT:
            self.options = []
            return self
        cleaned = [o.strip() for o in self.options if o and o.strip()]
        if len(cleaned) < 2:
            raise ValueError("Las preguntas de selección necesitan al menos 2 opciones")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Las opciones no pueden repetirse")
        self.options = cleaned
        return self


class QuestionOut(CamelModel):
    id: UUID
    survey_id: UUID
    text: str
    type: QuestionType
    options: List[str] = []
    created_at: datetime


# ---------- Respuestas ----------

class AnswerValueIn(CamelModel):
    value: Optional[str] = None
    options: Optional[List[str]] = None


class AnswerItemIn(AnswerValueIn):
    question_id: UUID


class SubmitAnswersIn(CamelModel):
    answers: List[AnswerItemIn] = Field(min_length=1)


class SubmitOut(CamelModel):
    survey_id: UUID
    created: int
    answered: int
    total_questions: int
    status: AssignmentStatus


class AnswerHistoryOut(CamelModel):
    id: UUID
    question_id: UUID
    question_text: str
    type: QuestionType
    value: Optional[str] = None
    options: List[str] = []
    created_at: datetime


# ---------- Asignaciones ----------

class AssignInstitutionIn(CamelModel):
    institution_id: Optional[UUID] = None


class AssignGroupIn(CamelModel):
    group_id: UUID


class FanOutOut(CamelModel):
    survey_id: UUID
    target: str
    target_count: int
    already_assigned: int
    created: int
    message: str


class AssignmentOut(CamelModel):
    id: UUID
    survey_id: UUID
    group_id: Optional[UUID] = None
    status: AssignmentStatus
    due_date: Optional[datetime] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    survey: SurveyOut


# ---------- Resultados ----------

class QuestionResultOut(CamelModel):
    question_id: UUID
    text: str
    type: QuestionType
    total_answers: int
    # TEXT: respuestas libres
    answers: List[str] = []
    # selección: conteo por opción
    option_counts: Dict[str, int] = {}


class SurveyResultsOut(CamelModel):
    survey_id: UUID
    title: str
    respondents: int
    questions: List[QuestionResultOut]
