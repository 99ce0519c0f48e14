"""Seed default roles into the database."""

from sqlalchemy.orm import Session
from lms_backend.models.role import Role, RoleName


ROLE_DESCRIPTIONS = {
    RoleName.superadmin: "Full system access, bypasses every role check",
    RoleName.admin: "Manage tutors, students and user accounts",
    RoleName.tutor: "Manage own students",
    RoleName.student: "Learner account",
}


def seed_roles(db: Session) -> None:
    """Insert default roles if they don't already exist."""
    for role_name, description in ROLE_DESCRIPTIONS.items():
        existing = db.query(Role).filter(Role.name == role_name.value).first()
        if not existing:
            db.add(Role(name=role_name.value, description=description))

    db.commit()
    print(f"✅ Seeded {len(ROLE_DESCRIPTIONS)} roles")
