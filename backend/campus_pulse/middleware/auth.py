"""Bearer-token auth for the dashboard API.

Tokens carry the user id, role and linked faculty profile. The role in the
token must still match the stored account, so a demoted admin loses access
without waiting for expiry.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from campus_pulse.config import settings
from campus_pulse.database import get_db
from campus_pulse.models.dashboard_user import DashboardUser

security = HTTPBearer()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user: DashboardUser, expires_minutes: Optional[int] = None) -> str:
    """Signed token for a dashboard account."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = {
        "sub": user.id,
        "role": user.role,
        "faculty_id": user.faculty_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> DashboardUser:
    claims = decode_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    user = db.get(DashboardUser, user_id)
    if user is None:
        raise _unauthorized("User not found")
    if claims.get("role") != user.role:
        raise _unauthorized("Role changed; sign in again")
    return user


def require_role(*roles: str):
    """Dependency factory admitting only the given roles."""

    def dependency(current_user: DashboardUser = Depends(get_current_user)) -> DashboardUser:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"{' or '.join(roles).capitalize()} role required")
        return current_user

    return dependency


require_admin = require_role("admin")
