"""User management service: listing, role/status changes, guarded deletes."""

from typing import List

from sqlalchemy.orm import Session

from lms_backend.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from lms_backend.models.role import Role, RoleName
from lms_backend.models.user import User, UserStatus
from lms_backend.services.auth_service import auth_service
from lms_backend.services.hierarchy_service import CascadeResult, hierarchy_service


class UserService:
    """Admin-facing user management on top of the hierarchy service."""

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(
                "The requested user does not exist", error="User not found"
            )
        return user

    @staticmethod
    def list_users(db: Session) -> List[User]:
        return db.query(User).order_by(User.id).all()

    @staticmethod
    def list_by_role(db: Session, role_name: RoleName) -> List[User]:
        return (
            db.query(User)
            .join(Role, User.role_id == Role.id)
            .filter(Role.name == RoleName(role_name).value)
            .order_by(User.id)
            .all()
        )

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.id).all()

    @staticmethod
    def require_role_by_id(db: Session, role_id: int) -> Role:
        role = auth_service.get_role(db, role_id)
        if not role:
            raise ValidationError("The specified role does not exist", error="Invalid role")
        return role

    @staticmethod
    def ensure_can_manage(actor_role: RoleName, user: User) -> None:
        """Only a superadmin may change or delete a superadmin account."""
        if user.role.role_name is RoleName.superadmin and RoleName(actor_role) is not RoleName.superadmin:
            raise AuthorizationError("Only a superadmin can manage superadmin accounts")

    @staticmethod
    def update_role(db: Session, actor_role: RoleName, user_id: int, role_name: RoleName) -> User:
        role = auth_service.get_role_by_name(db, role_name)
        if not role:
            raise ValidationError("The specified role does not exist", error="Invalid role")
        user = UserService.get_user(db, user_id)
        UserService.ensure_can_manage(actor_role, user)
        user.role_id = role.id
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update_status(db: Session, actor_role: RoleName, user_id: int, status: UserStatus) -> User:
        user = UserService.get_user(db, user_id)
        UserService.ensure_can_manage(actor_role, user)
        user.status = UserStatus(status).value
        db.commit()
        db.refresh(user)
        return user

    # ---- deletion ----

    @staticmethod
    def ensure_deletable(actor_id: int, user: User) -> None:
        """Deletion precondition: not yourself, and not an active account."""
        if user.id == actor_id:
            raise ValidationError(
                "You cannot delete your own account", error="Cannot delete own account"
            )
        if user.is_active:
            raise ValidationError(
                "Deactivate the account before deleting it", error="Account is active"
            )

    @staticmethod
    def _get_with_role(db: Session, user_id: int, role_name: RoleName) -> User:
        user = UserService.get_user(db, user_id)
        if user.role.role_name is not role_name:
            raise ValidationError(
                f"The specified user is not a {role_name.value}",
                error=f"Invalid {role_name.value}",
            )
        return user

    @staticmethod
    def delete_user(
        db: Session, actor_id: int, actor_role: RoleName, user_id: int, cascade: bool = True,
    ) -> CascadeResult:
        """Delete a user, by default together with everything it owns."""
        user = UserService.get_user(db, user_id)
        UserService.ensure_can_manage(actor_role, user)
        UserService.ensure_deletable(actor_id, user)
        if cascade:
            return hierarchy_service.delete_cascade(db, user_id)
        return hierarchy_service.delete_self_only(db, user_id)

    @staticmethod
    def cascade_delete_tutor(db: Session, actor_id: int, tutor_id: int) -> CascadeResult:
        tutor = UserService._get_with_role(db, tutor_id, RoleName.tutor)
        UserService.ensure_deletable(actor_id, tutor)
        return hierarchy_service.delete_cascade(db, tutor_id)

    @staticmethod
    def cascade_delete_admin(db: Session, actor_id: int, admin_id: int) -> CascadeResult:
        admin = UserService._get_with_role(db, admin_id, RoleName.admin)
        UserService.ensure_deletable(actor_id, admin)
        return hierarchy_service.delete_cascade(db, admin_id)

    @staticmethod
    def _ensure_all_inactive(users: List[User]) -> None:
        active = [u.id for u in users if u.is_active]
        if active:
            raise ValidationError(
                f"Deactivate these accounts before deleting them: {active}",
                error="Account is active",
            )

    @staticmethod
    def delete_students_of_tutor(db: Session, tutor_id: int) -> int:
        UserService._get_with_role(db, tutor_id, RoleName.tutor)
        UserService._ensure_all_inactive(hierarchy_service.list_owned(db, tutor_id, RoleName.student))
        return hierarchy_service.delete_students_of_tutor(db, tutor_id)

    @staticmethod
    def delete_tutors_of_admin(db: Session, admin_id: int) -> int:
        UserService._get_with_role(db, admin_id, RoleName.admin)
        UserService._ensure_all_inactive(hierarchy_service.list_owned(db, admin_id, RoleName.tutor))
        return hierarchy_service.delete_tutors_of_admin(db, admin_id)


user_service = UserService()
