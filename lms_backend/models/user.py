"""User model."""

import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from lms_backend.db.base import Base


class UserStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class User(Base):
    """Platform principal (superadmin, admin, tutor or student)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    status = Column(String(20), default=UserStatus.active.value, nullable=False)
    # Id of the creating principal. Not a foreign key: a self-only delete
    # of the creator leaves this value dangling on purpose.
    created_by = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    role = relationship("Role", lazy="joined")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active.value
