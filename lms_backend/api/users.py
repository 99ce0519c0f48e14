"""Users API router: profile, listings, hierarchy-aware creation and deletion."""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lms_backend.db.session import get_db
from lms_backend.schemas.schemas import (
    UserOut, CreateUserRequest, CreateStudentRequest, CreatedUserResponse,
    UpdateUserRoleRequest, UpdateUserStatusRequest, UpdatedUserResponse,
    DeleteUserResponse, TutorCascadeResponse, AdminCascadeResponse,
    DeletedCountResponse, ErrorResponse,
)
from lms_backend.services.auth_service import auth_service
from lms_backend.services.hierarchy_service import hierarchy_service
from lms_backend.services.user_service import user_service
from lms_backend.core.deps import (
    authenticate, ensure_self_or_role, require_admin, require_tutor, require_tutor_or_admin,
)
from lms_backend.core.exceptions import AuthorizationError, ConfigurationError
from lms_backend.core.security import TokenClaims
from lms_backend.models.role import RoleName

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 500)},
)


def _user_list(users) -> List[UserOut]:
    return [UserOut.from_user(u) for u in users]


@router.get("/profile", response_model=UserOut)
async def get_profile(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(authenticate),
):
    """Current user's profile."""
    return UserOut.from_user(user_service.get_user(db, claims.user_id))


@router.get("", response_model=List[UserOut])
async def list_users(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    """List all users (admin only)."""
    return _user_list(user_service.list_users(db))


@router.get("/tutors", response_model=List[UserOut])
async def list_tutors(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    return _user_list(user_service.list_by_role(db, RoleName.tutor))


@router.get("/students", response_model=List[UserOut])
async def list_students(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    return _user_list(user_service.list_by_role(db, RoleName.student))


@router.get("/creator/{creator_id}", response_model=List[UserOut])
async def list_created_by(
    creator_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(authenticate),
):
    """Accounts provisioned by ``creator_id`` (that creator or an admin)."""
    ensure_self_or_role(claims, creator_id, RoleName.admin)
    return _user_list(hierarchy_service.list_created_by(db, creator_id))


@router.get("/admin/{admin_id}/tutors", response_model=List[UserOut])
async def list_admin_tutors(
    admin_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    return _user_list(hierarchy_service.list_owned(db, admin_id, RoleName.tutor))


@router.get("/tutor/{tutor_id}/students", response_model=List[UserOut])
async def list_tutor_students(
    tutor_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_tutor_or_admin),
):
    """Students owned by a tutor (that tutor or an admin)."""
    ensure_self_or_role(claims, tutor_id, RoleName.admin)
    return _user_list(hierarchy_service.list_owned(db, tutor_id, RoleName.student))


# ---- creation ----

@router.post("/hierarchy", response_model=CreatedUserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_with_hierarchy(
    body: CreateUserRequest,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    """Create an account of any role; tutors are linked to the creating admin."""
    role = user_service.require_role_by_id(db, body.role_id)
    if role.role_name is RoleName.superadmin and claims.role_name is not RoleName.superadmin:
        raise AuthorizationError("Only a superadmin can create superadmin accounts")

    user = hierarchy_service.create_owned_principal(
        db,
        creator_id=claims.user_id,
        creator_role=claims.role_name,
        name=body.name,
        email=body.email,
        password=body.password,
        role=role,
        status=body.status,
    )
    return CreatedUserResponse(message="User created successfully", user=UserOut.from_user(user))


@router.post("/tutor-student", response_model=CreatedUserResponse, status_code=status.HTTP_201_CREATED)
async def create_student_as_tutor(
    body: CreateStudentRequest,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_tutor),
):
    """Create a student owned by the calling tutor."""
    role = auth_service.get_role_by_name(db, RoleName.student)
    if not role:
        raise ConfigurationError("Student role not found in database", error="Server error")

    user = hierarchy_service.create_owned_principal(
        db,
        creator_id=claims.user_id,
        creator_role=claims.role_name,
        name=body.name,
        email=body.email,
        password=body.password,
        role=role,
        status=body.status,
    )
    return CreatedUserResponse(message="Student created successfully", user=UserOut.from_user(user))


# ---- updates ----

@router.put("/{user_id}/role", response_model=UpdatedUserResponse)
async def update_user_role(
    user_id: int,
    body: UpdateUserRoleRequest,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    user = user_service.update_role(db, claims.role_name, user_id, RoleName(body.role_name))
    return UpdatedUserResponse(message="User role updated successfully", user=UserOut.from_user(user))


@router.put("/{user_id}/status", response_model=UpdatedUserResponse)
async def update_user_status(
    user_id: int,
    body: UpdateUserStatusRequest,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    user = user_service.update_status(db, claims.role_name, user_id, body.status)
    return UpdatedUserResponse(message="User status updated successfully", user=UserOut.from_user(user))


# ---- deletion ----

@router.delete("/{user_id}", response_model=DeleteUserResponse, response_model_exclude_none=True)
async def delete_user(
    user_id: int,
    cascade: bool = Query(True),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    """Delete an inactive user, by default together with everything it owns."""
    result = user_service.delete_user(db, claims.user_id, claims.role_name, user_id, cascade=cascade)

    message = "User deleted successfully"
    if result.tutors_deleted is not None:
        message = (
            f"Admin deleted successfully along with {result.tutors_deleted} tutor(s) "
            f"and {result.students_deleted} student(s)"
        )
    elif result.students_deleted is not None:
        message = f"Tutor deleted successfully along with {result.students_deleted} student(s)"

    return DeleteUserResponse(
        message=message,
        deleted_user_role=result.role.value,
        deleted_self=result.deleted_self,
        tutors_deleted=result.tutors_deleted,
        students_deleted=result.students_deleted,
    )


@router.delete("/tutor/{tutor_id}/cascade", response_model=TutorCascadeResponse)
async def cascade_delete_tutor(
    tutor_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    result = user_service.cascade_delete_tutor(db, claims.user_id, tutor_id)
    return TutorCascadeResponse(
        message=f"Tutor deleted successfully along with {result.students_deleted} student(s)",
        tutor_deleted=result.deleted_self,
        students_deleted=result.students_deleted or 0,
    )


@router.delete("/admin/{admin_id}/cascade", response_model=AdminCascadeResponse)
async def cascade_delete_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    result = user_service.cascade_delete_admin(db, claims.user_id, admin_id)
    return AdminCascadeResponse(
        message=(
            f"Admin deleted successfully along with {result.tutors_deleted} tutor(s) "
            f"and {result.students_deleted} student(s)"
        ),
        admin_deleted=result.deleted_self,
        tutors_deleted=result.tutors_deleted or 0,
        students_deleted=result.students_deleted or 0,
    )


@router.delete("/tutor/{tutor_id}/students", response_model=DeletedCountResponse)
async def delete_tutor_students(
    tutor_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    count = user_service.delete_students_of_tutor(db, tutor_id)
    return DeletedCountResponse(message=f"Deleted {count} student(s)", deleted_count=count)


@router.delete("/admin/{admin_id}/tutors", response_model=DeletedCountResponse)
async def delete_admin_tutors(
    admin_id: int,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(require_admin),
):
    count = user_service.delete_tutors_of_admin(db, admin_id)
    return DeletedCountResponse(message=f"Deleted {count} tutor(s)", deleted_count=count)
