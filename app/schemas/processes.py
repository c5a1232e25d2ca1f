from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.process import ProcessType
from app.schemas.common import CamelModel

# "valoracion", "VALORACIÓN" y "Valoración" son el mismo tipo
_TYPE_ALIASES = {
    "valoracion": ProcessType.VALORACION,
    "valoración": ProcessType.VALORACION,
    "procedimiento": ProcessType.PROCEDIMIENTO,
}


def _parse_type(v):
    if isinstance(v, str):
        return _TYPE_ALIASES.get(v.strip().lower(), v)
    return v


class ProcessIn(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    type: ProcessType
    group_ids: List[UUID] = []
    survey_ids: List[UUID] = []

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _parse_type(v)


class ProcessUpdateIn(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[ProcessType] = None
    # None = sin cambios; [] = vaciar
    group_ids: Optional[List[UUID]] = None
    survey_ids: Optional[List[UUID]] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return _parse_type(v)


class ProcessGroupOut(CamelModel):
    id: UUID
    name: str


class ProcessSurveyOut(CamelModel):
    id: UUID
    title: str


class ProcessOut(CamelModel):
    id: UUID
    code: int
    name: str
    type: ProcessType
    institution_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    groups: List[ProcessGroupOut] = []
    surveys: List[ProcessSurveyOut] = []
