"""Dashboard user model: admins and faculty who sign in to the dashboards."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey

from campus_pulse.database import Base


class DashboardUser(Base):
    __tablename__ = "dashboard_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="faculty")  # admin | faculty
    faculty_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
