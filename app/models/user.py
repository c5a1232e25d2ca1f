# app/models/user.py
import enum
import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Uuid, func
from sqlalchemy.orm import relationship

from app.core.timeutils import utcnow
from app.db.base_class import Base


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    INSTITUTION_ADMIN = "INSTITUTION_ADMIN"
    STUDENT = "STUDENT"
    SIN_ROL = "SIN_ROL"  # placeholder: rol aún no asignado


STAFF_ROLES = {Role.ADMIN, Role.INSTITUTION_ADMIN}


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(320), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    identification = Column(String(50), nullable=True)
    phone = Column(String(30), nullable=True)
    role = Column(
        Enum(Role, name="user_role", native_enum=False, length=32,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.STUDENT,
    )
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="SET NULL"), index=True, nullable=True)
    status = Column(String(20), nullable=False, default="activo")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    # recuperación de contraseña (solo guardamos el hash del token)
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    institution = relationship("Institution", foreign_keys=[institution_id], back_populates="users")
    deactivated_groups = relationship(
        "DeactivatedGroup", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def deactivated_group_ids(self) -> set:
        return {d.group_id for d in self.deactivated_groups}
