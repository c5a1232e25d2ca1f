# app/models/group.py
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Uuid, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base


class Group(Base):
    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    invitation_code = Column(String(16), unique=True, index=True, nullable=False)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="SET NULL"), index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan", passive_deletes=True)
    survey_links = relationship("GroupSurvey", back_populates="group", cascade="all, delete-orphan", passive_deletes=True)
    institution = relationship("Institution")


# membresía (PK compuesta)
class GroupMember(Base):
    __tablename__ = "group_members"

    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    joined_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    group = relationship("Group", back_populates="members")
    user = relationship("User")


# encuestas vinculadas al grupo: se asignan a quien se una
class GroupSurvey(Base):
    __tablename__ = "group_surveys"

    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    survey_id = Column(Uuid, ForeignKey("surveys.id", ondelete="CASCADE"), primary_key=True, index=True)
    linked_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    group = relationship("Group", back_populates="survey_links")
    survey = relationship("Survey")


# grupos que el usuario abandonó (la membresía y el historial se conservan)
class DeactivatedGroup(Base):
    __tablename__ = "user_deactivated_groups"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    deactivated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="deactivated_groups")
