# app/models/institution.py
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Uuid, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base


class Institution(Base):
    __tablename__ = "institutions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    # admin que la creó; se conserva la institución si el admin borra su cuenta
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL", use_alter=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    users = relationship("User", foreign_keys="User.institution_id", back_populates="institution")
