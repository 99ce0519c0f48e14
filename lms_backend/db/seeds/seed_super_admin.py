"""Seed the super-admin user from env vars."""

from sqlalchemy.orm import Session
from lms_backend.models.role import RoleName
from lms_backend.core.config import settings
from lms_backend.services.auth_service import auth_service


def seed_super_admin(db: Session) -> None:
    """Create the super-admin user if not already present."""
    super_admin_role = auth_service.get_role_by_name(db, RoleName.superadmin)
    if not super_admin_role:
        print("⚠️  superadmin role not found. Run seed_roles first.")
        return

    if auth_service.get_user_by_email(db, settings.SUPER_ADMIN_EMAIL):
        print(f"ℹ️  Super admin '{settings.SUPER_ADMIN_EMAIL}' already exists, skipping.")
        return

    auth_service.create_user(
        db,
        name="Super Admin",
        email=settings.SUPER_ADMIN_EMAIL,
        password=settings.SUPER_ADMIN_PASSWORD,
        role=super_admin_role,
    )
    print(f"✅ Created super admin: {settings.SUPER_ADMIN_EMAIL}")
