"""Request authentication and role gating dependencies."""

from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from lms_backend.core.exceptions import AuthenticationError, AuthorizationError
from lms_backend.core.security import TokenClaims, TokenCodec, get_token_codec
from lms_backend.models.role import RoleName

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """What a handler knows about the caller."""

    claims: Optional[TokenClaims] = None

    @property
    def is_authenticated(self) -> bool:
        return self.claims is not None


async def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> TokenClaims:
    """Verify the bearer access token and return its claims."""
    if credentials is None:
        raise AuthenticationError("Missing or invalid authorization header")

    claims = codec.verify_access(credentials.credentials)
    if claims is None:
        raise AuthenticationError("Invalid or expired token")
    return claims


async def optional_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> RequestContext:
    """Attach claims when a valid token is present; never rejects."""
    if credentials is None:
        return RequestContext()
    return RequestContext(claims=codec.verify_access(credentials.credentials))


class RequireRole:
    """Dependency that checks the caller holds one of the allowed roles.

    ``superadmin`` passes every check, see ``RoleName.implies_access``.
    """

    def __init__(self, *allowed: Union[RoleName, str]):
        self.allowed = tuple(RoleName(r) for r in allowed)

    async def __call__(self, claims: TokenClaims = Depends(authenticate)) -> TokenClaims:
        if not claims.role_name.satisfies_any(self.allowed):
            raise AuthorizationError("Insufficient permissions")
        return claims


def require_role(*allowed: Union[RoleName, str]) -> RequireRole:
    return RequireRole(*allowed)


def ensure_self_or_role(claims: TokenClaims, owner_id: int, *roles: RoleName) -> None:
    """Ownership check: the caller is ``owner_id`` or holds one of ``roles``."""
    if claims.user_id == owner_id:
        return
    if roles and claims.role_name.satisfies_any(roles):
        return
    raise AuthorizationError("You can only access your own data")


# Convenience dependencies
require_admin = require_role(RoleName.admin)
require_tutor = require_role(RoleName.tutor)
require_tutor_or_admin = require_role(RoleName.tutor, RoleName.admin)
