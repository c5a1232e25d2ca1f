# app/models/answer.py
import uuid

from sqlalchemy import Column, Text, ForeignKey, DateTime, Uuid, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base, JSONType


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)

    value = Column(Text, nullable=True)        # TEXT
    options = Column(JSONType, nullable=True)  # SINGLE_CHOICE / MULTIPLE_CHOICE

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_answer_user_question"),
    )

    question = relationship("Question")
    user = relationship("User")
