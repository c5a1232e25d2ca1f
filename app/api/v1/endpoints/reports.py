# app/api/v1/endpoints/reports.py
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps.scope import institution_scope
from app.core.timeutils import utcnow
from app.db.uow import UnitOfWork, get_uow
from app.schemas.dashboard import SubmissionRow
from app.services.dashboard import submissions_of_day

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/submissions", response_model=List[SubmissionRow])
def submissions_by_day(
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD (hoy por defecto)"),
    scope: Optional[UUID] = Depends(institution_scope),
    uow: UnitOfWork = Depends(get_uow),
):
    day = day or utcnow().date()
    return [SubmissionRow.model_validate(r) for r in submissions_of_day(uow.session, scope, day)]
