"""Session analytics model: the per-session roll-up written by the analysis pipeline."""

from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, Integer, String, Text, ForeignKey, UniqueConstraint

from campus_pulse.database import Base


class SessionAnalytics(Base):
    __tablename__ = "session_analytics"
    __table_args__ = (
        UniqueConstraint("session_id", "analysis_date", name="uq_session_analytics_session_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id"), nullable=False, index=True)
    analysis_date = Column(Date, nullable=False, index=True)

    faculty_name = Column(String(255), nullable=True)
    course_name = Column(String(255), nullable=True)
    batch_name = Column(String(255), nullable=True)
    session_datetime = Column(DateTime, nullable=True)

    present_students = Column(Integer, nullable=False, default=0)
    total_registered = Column(Integer, nullable=False, default=0)
    attendance_rate = Column(String(16), nullable=False)      # "80.0%" | "N/A"
    unique_respondents = Column(Integer, nullable=False, default=0)
    response_rate = Column(String(16), nullable=False)

    average_rating = Column(String(16), nullable=False)       # "4.33" | "N/A"
    low_ratings_count = Column(Integer, nullable=False, default=0)
    low_ratings_percentage = Column(String(16), nullable=False)

    avg_quiz_score = Column(Float, nullable=True)
    max_quiz_score = Column(Float, nullable=True)              # highest student score
    min_quiz_score = Column(Float, nullable=True)
    stddev_quiz_score = Column(Float, nullable=True)
    quiz_percentage = Column(String(16), nullable=False)       # "70.00%" | "N/A"
    above_90_count = Column(Integer, nullable=True)
    below_40_count = Column(Integer, nullable=True)

    session_health_score = Column(String(16), nullable=True)
    identified_issues = Column(Text, nullable=True)
    key_strengths = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
