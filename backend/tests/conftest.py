"""Shared fixtures: a temporary SQLite database seeded with one batch-day."""

import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from sqlalchemy.orm import sessionmaker

from campus_pulse.database import Base, build_engine
from campus_pulse.models import (
    AttendanceRecord,
    Batch,
    ClassSession,
    Course,
    CourseSection,
    FeedbackResponse,
    Profile,
    QuizScore,
    SessionQuestion,
)

RATING_ANSWERS = ["Excellent", "5", "Very Good", "Good", "5", "4"]  # 5,5,4,3,5,4


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'campus_pulse_test.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


def seed_batch_day(db):
    """Batch 1 on 2024-03-01 (IST): session A (full data) and session B (no attendance).

    Also adds a batch-1 session on the next day and a batch-2 session on the
    same day, which must never be picked up for (batch 1, 2024-03-01).
    """
    rao = Profile(id=1, name="Dr. Rao")
    iyer = Profile(id=2, name="Dr. Iyer")
    students = [Profile(id=100 + i, name=f"Student {i}") for i in range(10)]
    db.add_all([rao, iyer, *students])

    db.add_all([Batch(id=1, batch_name="Batch 2024"), Batch(id=2, batch_name="Batch 2025")])
    db.add_all([Course(id=1, course_name="Data Structures"), Course(id=2, course_name="Statistics")])
    db.add_all([
        CourseSection(id=1, course_id=1, batch_id=1),
        CourseSection(id=2, course_id=2, batch_id=1),
        CourseSection(id=3, course_id=1, batch_id=2),
    ])
    db.add_all([
        # 10:00 and 14:00 IST on 2024-03-01
        ClassSession(id=11, session_datetime=datetime(2024, 3, 1, 4, 30), section_id=1, actual_faculty_id=1),
        ClassSession(id=12, session_datetime=datetime(2024, 3, 1, 8, 30), section_id=2, actual_faculty_id=2),
        # 00:30 IST on 2024-03-02
        ClassSession(id=13, session_datetime=datetime(2024, 3, 1, 19, 0), section_id=1, actual_faculty_id=1),
        # other batch, same day
        ClassSession(id=14, session_datetime=datetime(2024, 3, 1, 5, 0), section_id=3, actual_faculty_id=1),
    ])

    rating_q = SessionQuestion(id=1, question_text="Rate the session", feedback_question_id=3)
    text_q = SessionQuestion(id=2, question_text="What could improve?", feedback_question_id=4)
    pace_q = SessionQuestion(id=3, question_text="How was the pace?", feedback_question_id=5)
    db.add_all([rating_q, text_q, pace_q])
    db.flush()

    for i, student in enumerate(students):
        db.add(AttendanceRecord(session_id=11, user_id=student.id, is_present=i < 8))

    for i, answer in enumerate(RATING_ANSWERS):
        db.add(FeedbackResponse(session_id=11, student_id=100 + i, session_question_id=1, response_text=answer))
    db.add(FeedbackResponse(
        session_id=11, student_id=100, session_question_id=2,
        response_text="The examples were clear but the pace was fast",
    ))
    for answer in ["Just right", "Just right", "Too fast"]:
        db.add(FeedbackResponse(session_id=11, student_id=101, session_question_id=3, response_text=answer))

    for i, score in enumerate([100, 80, 60, 40]):
        db.add(QuizScore(session_id=11, student_id=100 + i, quiz_score=score, max_quiz_score=100))

    # Noise on the excluded sessions
    db.add(AttendanceRecord(session_id=13, user_id=100, is_present=True))
    db.add(AttendanceRecord(session_id=14, user_id=100, is_present=False))
    db.commit()


@pytest.fixture
def seeded_factory(session_factory):
    db = session_factory()
    try:
        seed_batch_day(db)
    finally:
        db.close()
    return session_factory
