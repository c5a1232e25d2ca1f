from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.user import Role
from app.schemas.common import CamelModel


class UpdateInstitutionIn(CamelModel):
    institution_name: str = Field(min_length=1, max_length=200)


class UpdateRoleIn(CamelModel):
    role: Role


class InstitutionIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None


class InstitutionUpdateIn(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class InstitutionOut(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    owner_id: Optional[UUID] = None
    created_at: datetime
