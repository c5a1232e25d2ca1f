# app/api/v1/endpoints/users.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, Response, status

from app.api.deps.scope import resolve_institution_scope
from app.core.security import get_current_user, get_admin_user, get_staff_user
from app.db.uow import UnitOfWork, get_uow
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.users import UpdateInstitutionIn, UpdateRoleIn
from app.services import accounts
from app.services.audit import audit_log

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/me/institution", response_model=UserOut)
def update_my_institution(
    data: UpdateInstitutionIn,
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_current_user),
):
    with uow:
        accounts.set_institution_by_name(uow.session, user, data.institution_name)
    return UserOut.model_validate(user)


@router.get("/institution/{institution_id}", response_model=List[UserOut])
def users_by_institution(
    institution_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    user: User = Depends(get_staff_user),
):
    resolve_institution_scope(user, institution_id)
    return [UserOut.model_validate(u) for u in accounts.users_of_institution(uow.session, institution_id)]


@router.patch("/{user_id}/role", response_model=UserOut)
def update_role(
    data: UpdateRoleIn,
    request: Request,
    user_id: UUID = Path(...),
    uow: UnitOfWork = Depends(get_uow),
    admin: User = Depends(get_admin_user),
):
    with uow:
        target = accounts.change_role(uow.session, user_id, data.role, admin)
        audit_log(uow.session, user_id=admin.id, action="user.role", request=request,
                  payload={"user_id": user_id, "role": data.role.value})
    return UserOut.model_validate(target)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(uow: UnitOfWork = Depends(get_uow), user: User = Depends(get_current_user)):
    with uow:
        accounts.delete_account(uow.session, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
