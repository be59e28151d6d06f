"""Quiz score model: upserted per (session, student)."""

from sqlalchemy import Column, Float, Integer, ForeignKey, UniqueConstraint

from campus_pulse.database import Base


class QuizScore(Base):
    __tablename__ = "student_quiz_scores"
    __table_args__ = (UniqueConstraint("session_id", "student_id", name="uq_quiz_session_student"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    quiz_score = Column(Float, nullable=False)
    max_quiz_score = Column(Float, nullable=True)
