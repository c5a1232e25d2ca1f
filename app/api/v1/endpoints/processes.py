# app/api/v1/endpoints/processes.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from app.core.security import get_staff_user
from app.db.uow import UnitOfWork, get_uow
from app.models.user import User
from app.schemas.processes import ProcessIn, ProcessUpdateIn, ProcessOut
from app.services import processes as svc
from app.services.audit import audit_log

router = APIRouter(prefix="/processes", tags=["processes"])


@router.post("", response_model=ProcessOut, status_code=status.HTTP_201_CREATED)
def create_process(
    data: ProcessIn,
    request: Request,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        process = svc.create_process(
            uow.session, user,
            name=data.name, type=data.type, group_ids=data.group_ids, survey_ids=data.survey_ids,
        )
        audit_log(uow.session, user_id=user.id, action="process.create", request=request,
                  payload={"process_id": process.id, "code": process.code})
    return ProcessOut.model_validate(process)


@router.get("", response_model=List[ProcessOut])
def list_processes(
    institution_id: Optional[UUID] = Query(None, alias="institutionId"),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    return [ProcessOut.model_validate(p) for p in svc.visible_processes(uow.session, user, institution_id)]


@router.put("/{process_id}", response_model=ProcessOut)
def update_process(
    data: ProcessUpdateIn,
    process_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        process = svc.update_process(
            uow.session, process_id, user,
            name=data.name, type=data.type, group_ids=data.group_ids, survey_ids=data.survey_ids,
        )
    return ProcessOut.model_validate(process)


@router.delete("/{process_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_process(
    request: Request,
    process_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        svc.delete_process(uow.session, process_id, user)
        audit_log(uow.session, user_id=user.id, action="process.delete", payload={"process_id": process_id}, request=request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
