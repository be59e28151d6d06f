"""Session feedback question and response models."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from campus_pulse.database import Base


class SessionQuestion(Base):
    __tablename__ = "session_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_text = Column(Text, nullable=False)
    # Coded question kind: rating, multiple choice or free text (see Settings)
    feedback_question_id = Column(Integer, nullable=True)


class FeedbackResponse(Base):
    __tablename__ = "session_responses_feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("class_sessions.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    session_question_id = Column(Integer, ForeignKey("session_questions.id"), nullable=True)
    response_text = Column(String(2000), nullable=True)
    submitted_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    question = relationship("SessionQuestion")
