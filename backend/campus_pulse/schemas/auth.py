"""Dashboard auth schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

Role = Literal["admin", "faculty"]


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
    faculty_id: Optional[int] = None


class UserResponse(BaseModel):
    id: str
    email: str
    role: Role
    faculty_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
