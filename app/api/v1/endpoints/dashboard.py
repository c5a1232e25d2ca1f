# app/api/v1/endpoints/dashboard.py
from typing import List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps.scope import institution_scope, resolve_institution_scope
from app.core.security import get_current_user
from app.db.uow import UnitOfWork, get_uow
from app.models.user import User
from app.schemas.dashboard import (
    StaffStatsOut, StudentStatsOut,
    SurveyCompletionRow, SurveySubmissionsRow, InstitutionSummaryRow, AssignmentSummaryRow,
    WeekActivityOut, MonthlyProgressOut, FilterDatesOut,
)
from app.services import dashboard as svc
from app.services.windows import resolve_window

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

FILTER_DESC = "all | day | week | month | semester | semester1 | semester2"


@router.get("/stats", response_model=Union[StaffStatsOut, StudentStatsOut])
def stats(
    institution_id: Optional[UUID] = Query(None, alias="institutionId"),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    db = uow.session
    if user.is_staff:
        scope = resolve_institution_scope(user, institution_id)
        return StaffStatsOut.model_validate(svc.staff_stats(db, scope))
    return StudentStatsOut.model_validate(svc.student_stats(db, user))


@router.get("/completion", response_model=List[SurveyCompletionRow])
def completion(
    filter: str = Query("all", description=FILTER_DESC),
    scope: Optional[UUID] = Depends(institution_scope),
    uow: UnitOfWork = Depends(get_uow),
):
    window = resolve_window(filter)
    return [SurveyCompletionRow.model_validate(r) for r in svc.completion_by_survey(uow.session, scope, window)]


@router.get("/submissions-by-survey", response_model=List[SurveySubmissionsRow])
def submissions_by_survey(
    filter: str = Query("all", description=FILTER_DESC),
    scope: Optional[UUID] = Depends(institution_scope),
    uow: UnitOfWork = Depends(get_uow),
):
    window = resolve_window(filter)
    return [SurveySubmissionsRow.model_validate(r) for r in svc.submissions_by_survey(uow.session, scope, window)]


@router.get("/institution-summary", response_model=List[InstitutionSummaryRow])
def institution_summary(
    filter: str = Query("all", description=FILTER_DESC),
    scope: Optional[UUID] = Depends(institution_scope),
    uow: UnitOfWork = Depends(get_uow),
):
    window = resolve_window(filter)
    return [InstitutionSummaryRow.model_validate(r) for r in svc.institution_summary(uow.session, scope, window)]


@router.get("/assignment-summary", response_model=List[AssignmentSummaryRow])
def assignment_summary(
    filter: str = Query("all", description=FILTER_DESC),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    window = resolve_window(filter)
    return [AssignmentSummaryRow.model_validate(r) for r in svc.assignment_summary(uow.session, user, window)]


@router.get("/student-summary", response_model=List[SurveySubmissionsRow])
def student_summary(uow: UnitOfWork = Depends(get_uow), user: User = Depends(get_current_user)):
    return [SurveySubmissionsRow.model_validate(r) for r in svc.student_summary(uow.session, user)]


@router.get("/weekly-progress", response_model=List[WeekActivityOut])
def weekly_progress(uow: UnitOfWork = Depends(get_uow), user: User = Depends(get_current_user)):
    return [WeekActivityOut.model_validate(w) for w in svc.weekly_progress(uow.session, user)]


@router.get("/monthly-progress", response_model=MonthlyProgressOut)
def monthly_progress(
    month: int = Query(..., description="1-12"),
    year: int = Query(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    return MonthlyProgressOut.model_validate(svc.monthly_progress(uow.session, user, month, year))


@router.get("/filter-dates", response_model=FilterDatesOut)
def filter_dates(
    filter: str = Query("all", description=FILTER_DESC),
    user: User = Depends(get_current_user),
):
    w = resolve_window(filter)
    return FilterDatesOut(filter=w.filter, start=w.start, end=w.end)
