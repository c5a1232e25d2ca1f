# app/models/audit.py
import uuid

from sqlalchemy import Column, String, Text, DateTime, Uuid, func

from app.core.timeutils import utcnow
from app.db.base_class import Base, JSONType


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, index=True, nullable=True)  # actor
    action = Column(String(100), nullable=False)
    payload = Column(JSONType, nullable=True)
    ip = Column(String(64), nullable=True)
    ua = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
