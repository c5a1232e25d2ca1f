# app/api/v1/endpoints/surveys.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from fastapi.responses import StreamingResponse

from app.core.security import get_current_user, get_staff_user
from app.db.uow import UnitOfWork, get_uow
from app.models.survey import Survey
from app.models.user import User
from app.schemas.surveys import (
    SurveyCreateIn, SurveyUpdateIn, SurveyOut,
    QuestionIn, QuestionOut,
    SubmitAnswersIn, AnswerValueIn, SubmitOut, AnswerHistoryOut,
    AssignInstitutionIn, AssignGroupIn, FanOutOut,
    AssignmentOut, SurveyResultsOut,
)
from app.services import surveys as svc
from app.services import exports
from app.services.access import (
    get_survey_or_404, get_question_or_404, ensure_can_manage_survey, ensure_can_view_survey,
)
from app.services.answers import AnswerItem, submit_answers
from app.services.assignments import assign_to_institution, assign_to_group
from app.services.audit import audit_log
from app.services.completion import question_count

router = APIRouter(prefix="/surveys", tags=["surveys"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _survey_out(survey: Survey, qcount: int = 0, is_assigned: Optional[bool] = None) -> SurveyOut:
    out = SurveyOut.model_validate(survey)
    out.question_count = qcount
    out.is_assigned = is_assigned
    return out


# -------------------- encuestas -------------------- #

@router.post("", response_model=SurveyOut, status_code=status.HTTP_201_CREATED)
def create_survey(
    data: SurveyCreateIn,
    request: Request,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        survey = svc.create_survey(
            uow.session, user,
            title=data.title, description=data.description,
            start_date=data.start_date, end_date=data.end_date,
        )
        audit_log(uow.session, user_id=user.id, action="survey.create",
                  payload={"survey_id": survey.id, "title": survey.title}, request=request)
    return _survey_out(survey)


@router.get("", response_model=List[SurveyOut], response_model_exclude_none=True)
def list_surveys(
    group_id: Optional[UUID] = Query(None, alias="groupId"),
    institution_id: Optional[UUID] = Query(None, alias="institutionId"),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    db = uow.session
    surveys = svc.visible_surveys(db, user, institution_id)
    qcounts = svc.survey_question_counts(db, surveys)
    linked = svc.group_linked_survey_ids(db, group_id) if group_id else None
    return [
        _survey_out(s, qcounts.get(s.id, 0), (s.id in linked) if linked is not None else None)
        for s in surveys
    ]


@router.get("/assigned", response_model=List[AssignmentOut])
def my_assignments(uow: UnitOfWork = Depends(get_uow), user: User = Depends(get_current_user)):
    db = uow.session
    assignments = svc.active_assignments(db, user)
    qcounts = svc.survey_question_counts(db, [a.survey for a in assignments])
    out = []
    for a in assignments:
        item = AssignmentOut.model_validate(a)
        item.survey.question_count = qcounts.get(a.survey_id, 0)
        out.append(item)
    return out


@router.get("/{survey_id}", response_model=SurveyOut, response_model_exclude_none=True)
def get_survey(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    survey = get_survey_or_404(uow.session, survey_id)
    ensure_can_view_survey(uow.session, user, survey)
    return _survey_out(survey, question_count(uow.session, survey.id))


@router.put("/{survey_id}", response_model=SurveyOut, response_model_exclude_none=True)
def update_survey(
    data: SurveyUpdateIn,
    request: Request,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        survey = svc.update_survey(
            uow.session, survey_id, user,
            title=data.title, description=data.description, end_date=data.end_date,
        )
        audit_log(uow.session, user_id=user.id, action="survey.update", request=request,
                  payload={"survey_id": survey_id, **data.model_dump(exclude_none=True)})
    return _survey_out(survey, question_count(uow.session, survey.id))


@router.delete("/{survey_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_survey(
    request: Request,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        svc.delete_survey(uow.session, survey_id, user)
        audit_log(uow.session, user_id=user.id, action="survey.delete", payload={"survey_id": survey_id}, request=request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -------------------- preguntas -------------------- #

@router.post("/{survey_id}/questions", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
def add_question(
    data: QuestionIn,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        q = svc.add_question(uow.session, survey_id, user, text=data.text, type=data.type, options=data.options)
    return QuestionOut.model_validate(q)


@router.get("/{survey_id}/questions", response_model=List[QuestionOut])
def list_questions(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    ensure_can_view_survey(uow.session, user, get_survey_or_404(uow.session, survey_id))
    return [QuestionOut.model_validate(q) for q in svc.list_questions(uow.session, survey_id)]


@router.put("/{survey_id}/questions/{question_id}", response_model=QuestionOut)
def update_question(
    data: QuestionIn,
    survey_id: UUID = Path(...),
    question_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        q = svc.update_question(
            uow.session, survey_id, question_id, user, text=data.text, type=data.type, options=data.options
        )
    return QuestionOut.model_validate(q)


# -------------------- respuestas -------------------- #

@router.post("/{survey_id}/answers", response_model=SubmitOut, status_code=status.HTTP_201_CREATED)
def submit(
    data: SubmitAnswersIn,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    items = [AnswerItem(question_id=a.question_id, value=a.value, options=a.options) for a in data.answers]
    with uow:
        result = submit_answers(uow.session, user, survey_id, items)
    return SubmitOut.model_validate(result)


@router.post("/{survey_id}/questions/{question_id}/answer", response_model=SubmitOut, status_code=status.HTTP_201_CREATED)
def submit_one(
    data: AnswerValueIn,
    survey_id: UUID = Path(...),
    question_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    get_question_or_404(uow.session, survey_id, question_id)
    item = AnswerItem(question_id=question_id, value=data.value, options=data.options)
    with uow:
        result = submit_answers(uow.session, user, survey_id, [item])
    return SubmitOut.model_validate(result)


@router.get("/{survey_id}/answers/me", response_model=List[AnswerHistoryOut])
def my_answers(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    return [
        AnswerHistoryOut(
            id=a.id, question_id=q.id, question_text=q.text, type=q.type,
            value=a.value, options=a.options or [], created_at=a.created_at,
        )
        for a, q in svc.answer_history(uow.session, user, survey_id)
    ]


# -------------------- asignación -------------------- #

@router.post("/{survey_id}/assign", response_model=FanOutOut)
def assign_institution(
    request: Request,
    data: Optional[AssignInstitutionIn] = None,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    institution_id = data.institution_id if data else None
    with uow:
        result = assign_to_institution(uow.session, survey_id, user, institution_id)
        audit_log(uow.session, user_id=user.id, action="survey.assign", request=request,
                  payload={"survey_id": survey_id, "target": result.target, "created": result.created})
    return FanOutOut.model_validate(result)


@router.post("/{survey_id}/assign-to-group", response_model=FanOutOut)
def assign_group(
    data: AssignGroupIn,
    request: Request,
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        result = assign_to_group(uow.session, survey_id, data.group_id, user)
        audit_log(uow.session, user_id=user.id, action="survey.assign_group", request=request,
                  payload={"survey_id": survey_id, "target": result.target, "created": result.created})
    return FanOutOut.model_validate(result)


# -------------------- resultados / exportación -------------------- #

@router.get("/{survey_id}/results", response_model=SurveyResultsOut)
def results(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    return SurveyResultsOut.model_validate(svc.survey_results(uow.session, survey_id, user))


@router.get("/{survey_id}/export")
def export_csv(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    survey = get_survey_or_404(uow.session, survey_id)
    ensure_can_manage_survey(user, survey)
    headers, rows = exports.results_table(uow.session, survey)
    filename = exports.export_filename(survey, "csv")
    return StreamingResponse(
        exports.stream_csv(headers, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{survey_id}/export.xlsx")
def export_xlsx(
    survey_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    survey = get_survey_or_404(uow.session, survey_id)
    ensure_can_manage_survey(user, survey)
    headers, rows = exports.results_table(uow.session, survey)
    content = exports.build_xlsx(survey, headers, rows)
    filename = exports.export_filename(survey, "xlsx")
    return StreamingResponse(
        iter([content]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
