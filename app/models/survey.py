# app/models/survey.py
import enum
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Enum, Uuid, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base, JSONType


class QuestionType(str, enum.Enum):
    TEXT = "TEXT"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"


class Survey(Base):
    __tablename__ = "surveys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    # NULL = encuesta global
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="SET NULL"), index=True, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    questions = relationship(
        "Question",
        back_populates="survey",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Question.created_at",
    )
    institution = relationship("Institution")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    survey_id = Column(Uuid, ForeignKey("surveys.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    type = Column(
        Enum(QuestionType, name="question_type", native_enum=False, length=32,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    options = Column(JSONType, nullable=False, default=list)  # [] para TEXT
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    survey = relationship("Survey", back_populates="questions")
