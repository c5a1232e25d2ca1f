# app/api/v1/endpoints/groups.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user, get_staff_user
from app.db.uow import UnitOfWork, get_uow
from app.models.group import Group
from app.models.user import User
from app.schemas.common import MessageOut
from app.schemas.groups import (
    GroupCreateIn, GroupUpdateIn, GroupOut, GroupDetailOut, MemberOut,
    JoinGroupIn, JoinGroupOut, LinkSurveysIn,
)
from app.schemas.surveys import FanOutOut, SurveyOut
from app.services import groups as svc
from app.services.access import get_group_or_404
from app.services.assignments import link_surveys_to_group
from app.services.audit import audit_log
from app.services.surveys import survey_question_counts

router = APIRouter(prefix="/groups", tags=["groups"])


def _group_out(db: Session, group: Group, user: User, counts: Optional[dict] = None) -> GroupOut:
    if counts is None:
        counts = svc.member_counts(db, [group.id])
    out = GroupOut.model_validate(group)
    out.member_count = counts.get(group.id, 0)
    out.active = group.id not in user.deactivated_group_ids
    return out


@router.post("", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    data: GroupCreateIn,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        group = svc.create_group(
            uow.session, user, name=data.name, description=data.description, institution_id=data.institution_id
        )
    return _group_out(uow.session, group, user)


@router.get("", response_model=List[GroupOut])
def list_groups(
    institution_id: Optional[UUID] = Query(None, alias="institutionId"),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    db = uow.session
    groups = svc.visible_groups(db, user, institution_id)
    counts = svc.member_counts(db, [g.id for g in groups])
    return [_group_out(db, g, user, counts) for g in groups]


@router.post("/join", response_model=JoinGroupOut)
def join_group(
    data: JoinGroupIn,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        result = svc.join_group(uow.session, user, data.invitation_code)
    return JoinGroupOut(
        status=result.status,
        group=_group_out(uow.session, result.group, user),
        assignments_created=result.assignments_created,
    )


@router.get("/{group_id}", response_model=GroupDetailOut)
def get_group(
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    db = uow.session
    group = get_group_or_404(db, group_id)
    svc.ensure_can_view_group(db, user, group)
    base = _group_out(db, group, user)
    members = [
        MemberOut(user_id=u.id, name=u.name, email=u.email, joined_at=m.joined_at, active=active)
        for m, u, active in svc.members_of(db, group.id)
    ]
    return GroupDetailOut(**base.model_dump(), members=members)


@router.put("/{group_id}", response_model=GroupOut)
def update_group(
    data: GroupUpdateIn,
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        group = svc.update_group(uow.session, group_id, user, name=data.name, description=data.description)
    return _group_out(uow.session, group, user)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    request: Request,
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        svc.delete_group(uow.session, group_id, user)
        audit_log(uow.session, user_id=user.id, action="group.delete", payload={"group_id": group_id}, request=request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/leave", response_model=MessageOut)
def leave_group(
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        svc.leave_group(uow.session, user, group_id)
    return MessageOut(message="Has salido del grupo")


@router.delete("/{group_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    group_id: UUID = Path(...),
    member_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        svc.remove_member(uow.session, group_id, member_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/surveys", response_model=List[FanOutOut])
def link_surveys(
    data: LinkSurveysIn,
    request: Request,
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        results = link_surveys_to_group(uow.session, group_id, data.survey_ids, user)
        audit_log(uow.session, user_id=user.id, action="group.link_surveys", request=request,
                  payload={"group_id": group_id, "survey_ids": data.survey_ids,
                           "created": sum(r.created for r in results)})
    return [FanOutOut.model_validate(r) for r in results]


@router.get("/{group_id}/surveys", response_model=List[SurveyOut])
def group_surveys(
    group_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    db = uow.session
    group = get_group_or_404(db, group_id)
    svc.ensure_can_view_group(db, user, group)
    surveys = svc.linked_surveys(db, group.id)
    qcounts = survey_question_counts(db, surveys)
    out = []
    for s in surveys:
        item = SurveyOut.model_validate(s)
        item.question_count = qcounts.get(s.id, 0)
        out.append(item)
    return out
