"""Auth service: signup, login, token refresh, account creation."""

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms_backend.models.user import User, UserStatus
from lms_backend.models.role import Role, RoleName
from lms_backend.core.security import (
    TokenCodec, TokenPair, hash_password, verify_password,
)
from lms_backend.core.exceptions import (
    AccountInactiveError,
    AuthenticationError,
    ConfigurationError,
    InvalidCredentialsError,
    ResourceConflictError,
    ValidationError,
)

logger = logging.getLogger("lms_platform.auth")

DEFAULT_SIGNUP_ROLE = RoleName.student


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Handles authentication and account creation."""

    @staticmethod
    def get_role(db: Session, role_id: int) -> Optional[Role]:
        return db.query(Role).filter(Role.id == role_id).first()

    @staticmethod
    def get_role_by_name(db: Session, name: RoleName) -> Optional[Role]:
        return db.query(Role).filter(Role.name == RoleName(name).value).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    @staticmethod
    def create_user(
        db: Session,
        name: str,
        email: str,
        password: str,
        role: Role,
        status: UserStatus = UserStatus.active,
        created_by: Optional[int] = None,
        commit: bool = True,
    ) -> User:
        """Create a new user.

        With ``commit=False`` the row is only flushed, so the caller can add
        more rows to the same transaction.

        Raises:
            ResourceConflictError: If the email is already registered.
            ValidationError: If the password cannot be hashed.
        """
        if AuthService.get_user_by_email(db, email):
            raise ResourceConflictError(
                "An account with this email already exists",
                error="Email already registered",
            )

        try:
            password_hash = hash_password(password)
        except ValueError as e:
            raise ValidationError(str(e))

        user = User(
            name=name,
            email=normalize_email(email),
            password_hash=password_hash,
            role_id=role.id,
            status=UserStatus(status).value,
            created_by=created_by,
        )
        db.add(user)
        try:
            if commit:
                db.commit()
                db.refresh(user)
            else:
                db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent signup for the same email
            db.rollback()
            raise ResourceConflictError(
                "An account with this email already exists",
                error="Email already registered",
            ) from e
        return user

    @staticmethod
    def signup(
        db: Session, codec: TokenCodec, name: str, email: str, password: str,
    ) -> Tuple[User, TokenPair]:
        """Self-register a student account and sign it in."""
        role = AuthService.get_role_by_name(db, DEFAULT_SIGNUP_ROLE)
        if not role:
            raise ConfigurationError(
                "Student role not found in database", error="Server error"
            )

        user = AuthService.create_user(db, name, email, password, role)
        logger.info("User %s signed up", user.id)
        return user, codec.issue(user, role)

    @staticmethod
    def authenticate(
        db: Session, codec: TokenCodec, email: str, password: str,
    ) -> Tuple[User, TokenPair]:
        """Authenticate user and return a token pair.

        The password is checked before the account status, so only a caller
        holding the right password learns that an account is inactive.

        Raises:
            InvalidCredentialsError: If email or password is wrong.
            AccountInactiveError: If the account has been deactivated.
        """
        user = AuthService.get_user_by_email(db, email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountInactiveError()

        logger.info("User %s logged in", user.id)
        return user, codec.issue(user, user.role)

    @staticmethod
    def refresh_tokens(db: Session, codec: TokenCodec, refresh_token: str) -> TokenPair:
        """Mint a new pair from a valid refresh token of an active user."""
        claims = codec.verify_refresh(refresh_token)
        if claims is None:
            raise AuthenticationError(
                "Refresh token is invalid or expired", error="Invalid token"
            )

        user = db.query(User).filter(User.id == claims.user_id).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive", error="Invalid user")

        return codec.issue(user, user.role)


auth_service = AuthService()
