"""Seed a demo admin -> tutor -> student chain."""

from sqlalchemy.orm import Session
from lms_backend.models.role import RoleName
from lms_backend.models.user import User
from lms_backend.services.auth_service import auth_service
from lms_backend.services.hierarchy_service import hierarchy_service

DEMO_PASSWORD = "password123"

# (role, name, email, created by the previous entry)
DEMO_CHAIN = [
    (RoleName.admin, "Demo Admin", "admin@lms.com"),
    (RoleName.tutor, "Demo Tutor", "tutor@lms.com"),
    (RoleName.student, "Demo Student", "student@lms.com"),
]


def seed_demo_users(db: Session) -> None:
    """Create the demo chain; each account is owned by the one before it."""
    creator = db.query(User).order_by(User.id).first()
    if not creator:
        print("⚠️  No users found. Run seed_super_admin first.")
        return

    for role_name, name, email in DEMO_CHAIN:
        existing = auth_service.get_user_by_email(db, email)
        if existing:
            print(f"ℹ️  Demo user '{email}' already exists, skipping.")
            creator = existing
            continue

        role = auth_service.get_role_by_name(db, role_name)
        if not role:
            print(f"⚠️  {role_name.value} role not found. Run seed_roles first.")
            return

        creator = hierarchy_service.create_owned_principal(
            db,
            creator_id=creator.id,
            creator_role=creator.role.role_name,
            name=name,
            email=email,
            password=DEMO_PASSWORD,
            role=role,
        )

    print(f"✅ Seeded demo users (password: {DEMO_PASSWORD})")
