"""Auth router: dashboard sign-in, sign-out and the current account."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from campus_pulse.config import settings
from campus_pulse.database import get_db
from campus_pulse.models.dashboard_user import DashboardUser
from campus_pulse.schemas.auth import LoginRequest, TokenResponse, UserResponse
from campus_pulse.middleware.auth import verify_password, create_access_token, get_current_user
from campus_pulse.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    email = req.email.strip().lower()
    user = db.query(DashboardUser).filter(DashboardUser.email == email).first()
    if not user or not verify_password(req.password, user.password_hash):
        logger.info("Failed dashboard login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return TokenResponse(
        access_token=create_access_token(user),
        role=user.role,
        faculty_id=user.faculty_id,
    )


@router.post("/logout")
def logout():
    # Tokens are stateless; the client drops its copy.
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: DashboardUser = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
