"""Roles API router."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lms_backend.db.session import get_db
from lms_backend.schemas.schemas import RoleOut
from lms_backend.services.user_service import user_service
from lms_backend.core.deps import authenticate
from lms_backend.core.security import TokenClaims

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(authenticate),
):
    """List the closed set of roles."""
    return [RoleOut.model_validate(r) for r in user_service.list_roles(db)]
