"""Password hashing and the JWT token codec."""

import bcrypt
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from lms_backend.core.config import Settings, settings
from lms_backend.core.exceptions import ConfigurationError
from lms_backend.models.role import Role, RoleName
from lms_backend.models.user import User

logger = logging.getLogger("lms_platform.security")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _ensure_bcrypt_limit(password: str) -> None:
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError("Password too long (max 72 bytes).")


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password using bcrypt."""
    _ensure_bcrypt_limit(password)
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        _ensure_bcrypt_limit(plain_password)
    except ValueError:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


class TokenClaims(BaseModel):
    """Identity and role carried by both token kinds."""

    user_id: int
    email: str
    role_id: int
    role_name: RoleName


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenCodec:
    """Stateless signing and verification of access/refresh tokens.

    Access and refresh tokens are signed with separate secrets and carry a
    ``type`` claim, so one kind is never accepted in place of the other.
    Verification never raises: any failure yields ``None``.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenCodec":
        """Build the codec from configuration.

        Raises:
            ConfigurationError: If the access secret is missing, or the
                refresh secret is missing in production.
        """
        if not cfg.SESSION_SECRET:
            raise ConfigurationError(
                "SESSION_SECRET environment variable is required for JWT token generation"
            )

        refresh_secret = cfg.JWT_REFRESH_SECRET
        if not refresh_secret:
            if cfg.is_production:
                raise ConfigurationError(
                    "JWT_REFRESH_SECRET environment variable is required in production"
                )
            logger.warning(
                "JWT_REFRESH_SECRET not set. Using SESSION_SECRET for refresh tokens "
                "in %s; set a distinct value for production.",
                cfg.ENV,
            )
            refresh_secret = cfg.SESSION_SECRET

        return cls(
            access_secret=cfg.SESSION_SECRET,
            refresh_secret=refresh_secret,
            access_ttl=timedelta(minutes=cfg.ACCESS_TOKEN_EXPIRY_MINUTES),
            refresh_ttl=timedelta(days=cfg.REFRESH_TOKEN_EXPIRY_DAYS),
            algorithm=cfg.JWT_ALGORITHM,
        )

    def _encode(self, claims: dict, token_type: str, secret: str, ttl: timedelta, now: datetime) -> str:
        to_encode = dict(claims)
        to_encode.update({"type": token_type, "iat": now, "exp": now + ttl})
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def issue(self, user: User, role: Role, now: Optional[datetime] = None) -> TokenPair:
        """Sign a fresh access/refresh pair for ``user`` holding ``role``."""
        now = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "role_id": role.id,
            "role": role.name,
        }
        return TokenPair(
            access_token=self._encode(claims, ACCESS_TOKEN_TYPE, self.access_secret, self.access_ttl, now),
            refresh_token=self._encode(claims, REFRESH_TOKEN_TYPE, self.refresh_secret, self.refresh_ttl, now),
        )

    def _verify(self, token: str, secret: str, token_type: str) -> Optional[TokenClaims]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type") != token_type:
            return None

        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                email=payload["email"],
                role_id=payload["role_id"],
                role_name=payload["role"],
            )
        except (KeyError, TypeError, ValueError):
            return None

    def verify_access(self, token: str) -> Optional[TokenClaims]:
        return self._verify(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str) -> Optional[TokenClaims]:
        return self._verify(token, self.refresh_secret, REFRESH_TOKEN_TYPE)

    @staticmethod
    def decode_unsafe(token: str) -> Optional[dict]:
        """Read claims without checking the signature. Diagnostics only."""
        try:
            return jwt.get_unverified_claims(token)
        except JWTError:
            return None


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec built from ``settings``."""
    return TokenCodec.from_settings(settings)
