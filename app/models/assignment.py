# app/models/assignment.py
import enum
import uuid

from sqlalchemy import Column, ForeignKey, DateTime, Enum, Uuid, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base


class AssignmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class SurveyAssignment(Base):
    __tablename__ = "survey_assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    survey_id = Column(Uuid, ForeignKey("surveys.id", ondelete="CASCADE"), index=True, nullable=False)
    # grupo por el que llegó la asignación (si aplica)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="SET NULL"), index=True, nullable=True)
    status = Column(
        Enum(AssignmentStatus, name="assignment_status", native_enum=False, length=16,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AssignmentStatus.PENDING,
        index=True,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "survey_id", name="uq_assignment_user_survey"),
    )

    survey = relationship("Survey")
    user = relationship("User")
