"""Pydantic schemas for API request/response serialization.

Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Literal
from datetime import datetime

from lms_backend.models.user import User, UserStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---- Errors ----
class ErrorResponse(CamelModel):
    error: str
    message: str
    details: Optional[List[Any]] = None


class MessageResponse(CamelModel):
    message: str


# ---- Auth ----
class SignupRequest(CamelModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


# ---- User ----
class UserOut(CamelModel):
    id: int
    name: str
    email: str
    role: Optional[str] = None
    status: UserStatus
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role.name if user.role else None,
            status=UserStatus(user.status),
            created_at=user.created_at,
            created_by=user.created_by,
        )


class AuthResponse(CamelModel):
    message: str
    user: UserOut
    access_token: str
    refresh_token: str


class TokenRefreshResponse(CamelModel):
    message: str
    access_token: str
    refresh_token: str


class CreateUserRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role_id: int
    status: UserStatus = UserStatus.active


class CreateStudentRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    status: UserStatus = UserStatus.active


class CreatedUserResponse(CamelModel):
    message: str
    user: UserOut


class UpdateUserRoleRequest(CamelModel):
    role_name: Literal["admin", "tutor", "student"]


class UpdateUserStatusRequest(CamelModel):
    status: UserStatus


class UpdatedUserResponse(CamelModel):
    message: str
    user: UserOut


# ---- Deletion ----
class DeleteUserResponse(CamelModel):
    message: str
    deleted_user_role: Optional[str] = None
    deleted_self: int = 1
    tutors_deleted: Optional[int] = None
    students_deleted: Optional[int] = None


class TutorCascadeResponse(CamelModel):
    message: str
    tutor_deleted: int
    students_deleted: int


class AdminCascadeResponse(CamelModel):
    message: str
    admin_deleted: int
    tutors_deleted: int
    students_deleted: int


class DeletedCountResponse(CamelModel):
    message: str
    deleted_count: int


# ---- Role ----
class RoleOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
