from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class GroupCreateIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    institution_id: Optional[UUID] = None


class GroupUpdateIn(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class GroupOut(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    invitation_code: str
    created_by: Optional[UUID] = None
    institution_id: Optional[UUID] = None
    created_at: datetime
    member_count: int = 0
    # False si el usuario actual abandonó el grupo
    active: bool = True


class MemberOut(CamelModel):
    user_id: UUID
    name: str
    email: str
    joined_at: datetime
    active: bool


class GroupDetailOut(GroupOut):
    members: List[MemberOut] = []


class JoinGroupIn(CamelModel):
    invitation_code: str = Field(min_length=1, max_length=32)


class JoinGroupOut(CamelModel):
    status: Literal["joined", "rejoined", "already_member"]
    group: GroupOut
    assignments_created: int


class LinkSurveysIn(CamelModel):
    survey_ids: List[UUID] = Field(min_length=1)
