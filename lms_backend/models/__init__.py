"""Models package: import all models so metadata.create_all can discover them."""

from lms_backend.models.role import Role, RoleName
from lms_backend.models.user import User, UserStatus
from lms_backend.models.hierarchy import TutorAdminMapping, StudentTutorMapping

__all__ = [
    "Role", "RoleName", "User", "UserStatus",
    "TutorAdminMapping", "StudentTutorMapping",
]
