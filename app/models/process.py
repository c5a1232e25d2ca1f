# app/models/process.py
import enum
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Uuid, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base


class ProcessType(str, enum.Enum):
    VALORACION = "Valoración"
    PROCEDIMIENTO = "Procedimiento"


class Process(Base):
    """Agrupa grupos y encuestas bajo un nombre; `code` es correlativo (1, 2, 3...)."""
    __tablename__ = "processes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(Integer, unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(
        Enum(ProcessType, name="process_type", native_enum=False, length=32,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="SET NULL"), index=True, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)

    groups = relationship("Group", secondary="process_groups", order_by="Group.name")
    surveys = relationship("Survey", secondary="process_surveys", order_by="Survey.title")
    creator = relationship("User")


class ProcessGroup(Base):
    __tablename__ = "process_groups"

    process_id = Column(Uuid, ForeignKey("processes.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True, index=True)


class ProcessSurvey(Base):
    __tablename__ = "process_surveys"

    process_id = Column(Uuid, ForeignKey("processes.id", ondelete="CASCADE"), primary_key=True)
    survey_id = Column(Uuid, ForeignKey("surveys.id", ondelete="CASCADE"), primary_key=True, index=True)
