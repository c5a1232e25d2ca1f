from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class StaffStatsOut(CamelModel):
    scope: str  # "global" | "institution"
    institution_id: Optional[UUID] = None
    students: int
    groups: int
    surveys: int
    assignments: int
    pending: int
    completed: int
    completion_rate: float


class StudentStatsOut(CamelModel):
    scope: str = "student"
    groups: int
    active_groups: int
    surveys: int
    pending: int
    completed: int
    answers: int


class SurveyCompletionRow(CamelModel):
    survey_id: UUID
    title: str
    question_count: int
    assigned: int
    completed: int
    completion_rate: float


class SurveySubmissionsRow(CamelModel):
    survey_id: UUID
    title: str
    submissions: int


class InstitutionSummaryRow(CamelModel):
    institution_id: UUID
    name: str
    students: int
    assignments: int
    completed: int
    completion_rate: float


class AssignmentSummaryRow(CamelModel):
    group_id: UUID
    survey_id: UUID
    name: str  # "Encuesta (Grupo)"
    submissions: int


class WeekActivityOut(CamelModel):
    year: int
    week_number: int
    days: List[bool]  # lunes = 0


class CalendarDay(CamelModel):
    day: int  # 0 = relleno
    has_activity: bool


class MonthlyProgressOut(CamelModel):
    month: int
    year: int
    calendar: List[List[CalendarDay]]
    weekly_totals: List[int]


class FilterDatesOut(CamelModel):
    filter: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SubmissionRow(CamelModel):
    student_name: str
    survey_name: str
    submitted_at: datetime
