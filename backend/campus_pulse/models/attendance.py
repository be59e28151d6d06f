"""Attendance record model: one row per (session, student)."""

from sqlalchemy import Boolean, Column, Integer, ForeignKey, UniqueConstraint

from campus_pulse.database import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_attendance_session_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    is_present = Column(Boolean, nullable=False, default=False)
