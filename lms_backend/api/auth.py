"""Auth API router: signup, login, refresh, logout."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms_backend.db.session import get_db
from lms_backend.schemas.schemas import (
    SignupRequest, LoginRequest, RefreshRequest,
    AuthResponse, TokenRefreshResponse, UserOut, MessageResponse, ErrorResponse,
)
from lms_backend.services.auth_service import auth_service
from lms_backend.core.deps import authenticate
from lms_backend.core.exceptions import ValidationError
from lms_backend.core.security import TokenClaims, TokenCodec, get_token_codec

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={code: {"model": ErrorResponse} for code in (400, 401, 403, 409)},
)
logger = logging.getLogger("lms_platform.auth")


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    """Register a new student account and return a token pair."""
    user, tokens = auth_service.signup(db, codec, body.name, body.email, body.password)
    return AuthResponse(
        message="User registered successfully",
        user=UserOut.from_user(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    """Authenticate and return JWT tokens."""
    user, tokens = auth_service.authenticate(db, codec, body.email, body.password)
    return AuthResponse(
        message="Login successful",
        user=UserOut.from_user(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh(
    body: RefreshRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    """Exchange a refresh token for a new token pair."""
    if not body.refresh_token:
        raise ValidationError("Refresh token is required", error="Missing refresh token")

    tokens = auth_service.refresh_tokens(db, codec, body.refresh_token)
    return TokenRefreshResponse(
        message="Token refreshed successfully",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(claims: TokenClaims = Depends(authenticate)):
    """Acknowledge a logout. Tokens are stateless; the client drops them."""
    logger.info("User %s logged out", claims.user_id)
    return MessageResponse(message="Logged out successfully")
