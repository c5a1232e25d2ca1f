# app/api/v1/endpoints/institutions.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status

from app.core.security import get_current_user, get_staff_user
from app.db.uow import UnitOfWork, get_uow
from app.models.user import User
from app.schemas.users import InstitutionIn, InstitutionOut, InstitutionUpdateIn
from app.services import institutions as svc

router = APIRouter(prefix="/institutions", tags=["institutions"])


@router.post("", response_model=InstitutionOut, status_code=status.HTTP_201_CREATED)
def create_institution(
    data: InstitutionIn,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    with uow:
        inst = svc.create_institution(uow.session, user, name=data.name, description=data.description)
    return InstitutionOut.model_validate(inst)


@router.put("/{institution_id}", response_model=InstitutionOut)
def update_institution(
    data: InstitutionUpdateIn,
    institution_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        inst = svc.update_institution(
            uow.session, institution_id, user, name=data.name, description=data.description
        )
    return InstitutionOut.model_validate(inst)


@router.get("", response_model=List[InstitutionOut])
def list_institutions(uow: UnitOfWork = Depends(get_uow)):
    return [InstitutionOut.model_validate(i) for i in svc.list_institutions(uow.session)]
