"""Role model for RBAC."""

import enum

from sqlalchemy import Column, Integer, String, DateTime, func
from lms_backend.db.base import Base


class RoleName(str, enum.Enum):
    """Closed set of roles a principal can hold."""

    superadmin = "superadmin"
    admin = "admin"
    tutor = "tutor"
    student = "student"

    def implies_access(self, required: "RoleName") -> bool:
        """Whether holding this role satisfies a gate asking for ``required``.

        ``superadmin`` satisfies every gate; every other role only satisfies
        a gate naming it.
        """
        return self is RoleName.superadmin or self is RoleName(required)

    def satisfies_any(self, allowed) -> bool:
        return any(self.implies_access(r) for r in allowed)


class Role(Base):
    """System role referenced by every user row."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    @property
    def role_name(self) -> RoleName:
        return RoleName(self.name)
