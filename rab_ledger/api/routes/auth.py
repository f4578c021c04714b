"""Login and current-user routes."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rab_ledger.api.deps import get_request_context
from rab_ledger.errors import NotFound
from rab_ledger.models.user import User
from rab_ledger.schemas.auth import LoginPayload, TokenResponse, UserResponse
from rab_ledger.services import get_db
from rab_ledger.services.auth_service import (
    RequestContext,
    authenticate_user,
    create_access_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginPayload, db: Session = Depends(get_db)) -> TokenResponse:
    """
    Exchange email and password for a bearer token.

    Returns:
        200: TokenResponse
        401: Invalid credentials
    """
    user = authenticate_user(db, payload.email, payload.password)
    token, expires_at = create_access_token(user)
    logger.info("User %d logged in", user.id)
    return TokenResponse(
        access_token=token,
        expires_at=expires_at,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
def me(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Return the authenticated user."""
    user = db.get(User, ctx.user_id)
    if user is None:
        raise NotFound(f"User {ctx.user_id} not found")
    return UserResponse.model_validate(user)
