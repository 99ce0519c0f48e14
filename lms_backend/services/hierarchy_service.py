"""Hierarchy service: creator ownership graph and cascading deletes.

Two edge kinds exist: admin -> tutor (``tutor_admin_mapping``) and
tutor -> student (``student_tutor_mapping``). Cascades always remove
children before parents and edges before the rows they point at, and run
inside a single transaction.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lms_backend.core.config import settings
from lms_backend.core.exceptions import HierarchyError, ResourceNotFoundError
from lms_backend.models.hierarchy import StudentTutorMapping, TutorAdminMapping
from lms_backend.models.role import Role, RoleName
from lms_backend.models.user import User, UserStatus
from lms_backend.services.auth_service import auth_service

logger = logging.getLogger("lms_platform.hierarchy")

ATOMIC = "atomic"
BEST_EFFORT = "best_effort"


@dataclass
class CascadeResult:
    """Rows removed by a delete, grouped by role."""

    role: RoleName
    deleted_self: int = 1
    tutors_deleted: Optional[int] = None
    students_deleted: Optional[int] = None

    def as_dict(self) -> Dict[str, int]:
        result = {"deletedSelf": self.deleted_self}
        if self.tutors_deleted is not None:
            result["deletedTutors"] = self.tutors_deleted
        if self.students_deleted is not None:
            result["deletedStudents"] = self.students_deleted
        return result


class HierarchyService:
    """Maintains admin -> tutor -> student edges."""

    # ---- edges ----

    @staticmethod
    def link(db: Session, owner_id: int, owned_id: int, owned_role: RoleName):
        """Add the edge ``owner -> owned`` and flush it."""
        owned_role = RoleName(owned_role)
        if owned_role is RoleName.tutor:
            edge = TutorAdminMapping(tutor_id=owned_id, admin_id=owner_id)
        elif owned_role is RoleName.student:
            edge = StudentTutorMapping(student_id=owned_id, tutor_id=owner_id)
        else:
            raise ValueError(f"Role '{owned_role.value}' cannot be owned")
        db.add(edge)
        db.flush()
        return edge

    @staticmethod
    def unlink(db: Session, owned_id: int, owned_role: RoleName) -> int:
        """Remove the inbound edge of ``owned_id``. Returns edges removed."""
        owned_role = RoleName(owned_role)
        if owned_role is RoleName.tutor:
            query = db.query(TutorAdminMapping).filter(TutorAdminMapping.tutor_id == owned_id)
        elif owned_role is RoleName.student:
            query = db.query(StudentTutorMapping).filter(StudentTutorMapping.student_id == owned_id)
        else:
            return 0
        count = query.delete(synchronize_session=False)
        db.commit()
        return count

    @staticmethod
    def _edge_role_for(creator_role: RoleName, subordinate_role: RoleName) -> Optional[RoleName]:
        """Which edge, if any, records ``creator`` provisioning ``subordinate``."""
        if subordinate_role is RoleName.tutor:
            return RoleName.tutor
        if subordinate_role is RoleName.student and creator_role is RoleName.tutor:
            return RoleName.student
        return None

    # ---- creation ----

    @staticmethod
    def create_owned_principal(
        db: Session,
        creator_id: int,
        creator_role: RoleName,
        name: str,
        email: str,
        password: str,
        role: Role,
        status: UserStatus = UserStatus.active,
        policy: Optional[str] = None,
    ) -> User:
        """Create a subordinate account plus the edge from its creator.

        ``atomic`` policy: account and edge share one transaction; a failed
        edge write rolls back the account and raises ``HierarchyError``.
        ``best_effort`` policy: the account is committed first; a failed edge
        write is logged and the account is kept.
        """
        policy = policy or settings.HIERARCHY_EDGE_POLICY
        creator_role = RoleName(creator_role)
        edge_role = HierarchyService._edge_role_for(creator_role, role.role_name)

        if policy == BEST_EFFORT:
            user = auth_service.create_user(
                db, name, email, password, role, status, created_by=creator_id,
            )
            if edge_role is not None:
                try:
                    HierarchyService.link(db, creator_id, user.id, edge_role)
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    logger.error(
                        "Failed to create %s mapping for user %s (creator %s)",
                        edge_role.value, user.id, creator_id,
                        exc_info=True,
                    )
            return user

        try:
            user = auth_service.create_user(
                db, name, email, password, role, status,
                created_by=creator_id, commit=False,
            )
            if edge_role is not None:
                HierarchyService.link(db, creator_id, user.id, edge_role)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to create owned %s for creator %s", role.name, creator_id, exc_info=True)
            raise HierarchyError("Failed to create user hierarchy link") from e
        except Exception:
            db.rollback()
            raise

        db.refresh(user)
        return user

    # ---- listing ----

    @staticmethod
    def list_owned(db: Session, owner_id: int, owned_role: RoleName) -> List[User]:
        """Principals of ``owned_role`` that ``owner_id`` owns."""
        owned_role = RoleName(owned_role)
        if owned_role is RoleName.tutor:
            ids = [m.tutor_id for m in db.query(TutorAdminMapping).filter(TutorAdminMapping.admin_id == owner_id)]
        elif owned_role is RoleName.student:
            ids = [m.student_id for m in db.query(StudentTutorMapping).filter(StudentTutorMapping.tutor_id == owner_id)]
        else:
            return []

        if not ids:
            return []
        return db.query(User).filter(User.id.in_(ids)).order_by(User.id).all()

    @staticmethod
    def list_created_by(db: Session, creator_id: int) -> List[User]:
        return db.query(User).filter(User.created_by == creator_id).order_by(User.id).all()

    # ---- deletion primitives (flush only, caller commits) ----

    @staticmethod
    def _delete_rows(db: Session, user_ids: List[int]) -> int:
        if not user_ids:
            return 0
        return db.query(User).filter(User.id.in_(user_ids)).delete(synchronize_session=False)

    @staticmethod
    def _delete_incident_edges(db: Session, user_id: int) -> None:
        db.query(TutorAdminMapping).filter(
            or_(TutorAdminMapping.tutor_id == user_id, TutorAdminMapping.admin_id == user_id)
        ).delete(synchronize_session=False)
        db.query(StudentTutorMapping).filter(
            or_(StudentTutorMapping.student_id == user_id, StudentTutorMapping.tutor_id == user_id)
        ).delete(synchronize_session=False)

    @staticmethod
    def _delete_students_of(db: Session, tutor_id: int) -> int:
        student_ids = [
            m.student_id
            for m in db.query(StudentTutorMapping).filter(StudentTutorMapping.tutor_id == tutor_id)
        ]
        if not student_ids:
            return 0
        db.query(StudentTutorMapping).filter(
            StudentTutorMapping.student_id.in_(student_ids)
        ).delete(synchronize_session=False)
        return HierarchyService._delete_rows(db, student_ids)

    @staticmethod
    def _tutor_ids_of(db: Session, admin_id: int) -> List[int]:
        return [
            m.tutor_id
            for m in db.query(TutorAdminMapping).filter(TutorAdminMapping.admin_id == admin_id)
        ]

    @staticmethod
    def _delete_tutors_of(db: Session, admin_id: int) -> Tuple[int, int]:
        """Delete every tutor of ``admin_id`` with their students.

        Returns ``(tutors_deleted, students_deleted)``.
        """
        tutor_ids = HierarchyService._tutor_ids_of(db, admin_id)
        students_deleted = 0
        for tutor_id in tutor_ids:
            students_deleted += HierarchyService._delete_students_of(db, tutor_id)
        for tutor_id in tutor_ids:
            HierarchyService._delete_incident_edges(db, tutor_id)
        tutors_deleted = HierarchyService._delete_rows(db, tutor_ids)
        return tutors_deleted, students_deleted

    @staticmethod
    def _run_in_transaction(db: Session, action: str, fn):
        try:
            result = fn()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("%s failed; transaction rolled back", action, exc_info=True)
            raise HierarchyError(f"{action} failed") from e
        return result

    @staticmethod
    def _get_user(db: Session, principal_id: int) -> User:
        user = db.query(User).filter(User.id == principal_id).first()
        if not user:
            raise ResourceNotFoundError(
                "The requested user does not exist", error="User not found"
            )
        return user

    # ---- public deletes ----

    @staticmethod
    def delete_cascade(db: Session, principal_id: int) -> CascadeResult:
        """Delete a principal and everything it transitively owns.

        Never walks upward: deleting a student leaves its tutor alone.
        """
        user = HierarchyService._get_user(db, principal_id)
        role = user.role.role_name

        def _cascade() -> CascadeResult:
            result = CascadeResult(role=role)
            if role in (RoleName.admin, RoleName.superadmin):
                result.tutors_deleted, result.students_deleted = (
                    HierarchyService._delete_tutors_of(db, principal_id)
                )
            elif role is RoleName.tutor:
                result.students_deleted = HierarchyService._delete_students_of(db, principal_id)
            HierarchyService._delete_incident_edges(db, principal_id)
            result.deleted_self = HierarchyService._delete_rows(db, [principal_id])
            return result

        result = HierarchyService._run_in_transaction(db, f"Cascade delete of user {principal_id}", _cascade)
        logger.info("Cascade-deleted %s %s: %s", role.value, principal_id, result.as_dict())
        return result

    @staticmethod
    def delete_self_only(db: Session, principal_id: int) -> CascadeResult:
        """Delete one principal row and its edges; subordinates stay orphaned."""
        user = HierarchyService._get_user(db, principal_id)
        role = user.role.role_name

        def _delete() -> CascadeResult:
            HierarchyService._delete_incident_edges(db, principal_id)
            return CascadeResult(role=role, deleted_self=HierarchyService._delete_rows(db, [principal_id]))

        result = HierarchyService._run_in_transaction(db, f"Delete of user {principal_id}", _delete)
        logger.info("Deleted %s %s without cascade", role.value, principal_id)
        return result

    @staticmethod
    def delete_students_of_tutor(db: Session, tutor_id: int) -> int:
        """Delete every student owned by ``tutor_id``; the tutor stays."""
        return HierarchyService._run_in_transaction(
            db, f"Delete of students of tutor {tutor_id}",
            lambda: HierarchyService._delete_students_of(db, tutor_id),
        )

    @staticmethod
    def delete_tutors_of_admin(db: Session, admin_id: int) -> int:
        """Delete every tutor owned by ``admin_id``.

        Their students are kept and lose their tutor edge.
        """
        def _delete() -> int:
            tutor_ids = HierarchyService._tutor_ids_of(db, admin_id)
            for tutor_id in tutor_ids:
                HierarchyService._delete_incident_edges(db, tutor_id)
            return HierarchyService._delete_rows(db, tutor_ids)

        return HierarchyService._run_in_transaction(db, f"Delete of tutors of admin {admin_id}", _delete)


hierarchy_service = HierarchyService()
