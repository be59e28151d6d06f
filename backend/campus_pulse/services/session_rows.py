"""Row fetching and grouping for the session analysis pipeline.

Sessions for a batch on a given local day are loaded first; feedback,
attendance and quiz rows for those sessions are then loaded concurrently,
each query on its own ORM session in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from campus_pulse.models.class_session import Batch, Course, CourseSection, ClassSession
from campus_pulse.models.profile import Profile
from campus_pulse.models.attendance import AttendanceRecord
from campus_pulse.models.feedback import FeedbackResponse, SessionQuestion
from campus_pulse.models.quiz_score import QuizScore

logger = logging.getLogger(__name__)


@dataclass
class SessionInfo:
    session_id: int
    session_datetime: datetime
    faculty_name: str
    course_name: str
    batch_name: str


@dataclass
class SessionRows:
    """Sessions for one (batch, day) plus their source rows keyed by session id."""

    sessions: list[SessionInfo]
    feedback: dict[int, list[dict]] = field(default_factory=dict)
    attendance: dict[int, list[dict]] = field(default_factory=dict)
    quiz: dict[int, list[dict]] = field(default_factory=dict)

    @property
    def session_ids(self) -> list[int]:
        return [s.session_id for s in self.sessions]


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day, as naive UTC datetimes."""
    tz = ZoneInfo(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def group_by_session(rows: list[dict]) -> dict[int, list[dict]]:
    grouped: dict[int, list[dict]] = defaultdict(list)
    for row in rows:
        grouped[row["session_id"]].append(row)
    return dict(grouped)


# ─────────────────────────────────────────────────────────────────────────────
# Queries (synchronous, one ORM session each)
# ─────────────────────────────────────────────────────────────────────────────

def fetch_sessions(db: Session, batch_id: int, start: datetime, end: datetime) -> list[SessionInfo]:
    rows = (
        db.query(
            ClassSession.id,
            ClassSession.session_datetime,
            ClassSession.actual_faculty_id,
            Profile.name,
            Course.course_name,
            Batch.batch_name,
        )
        .join(CourseSection, ClassSession.section_id == CourseSection.id)
        .outerjoin(Course, CourseSection.course_id == Course.id)
        .outerjoin(Batch, CourseSection.batch_id == Batch.id)
        .outerjoin(Profile, ClassSession.actual_faculty_id == Profile.id)
        .filter(
            CourseSection.batch_id == batch_id,
            ClassSession.session_datetime >= start,
            ClassSession.session_datetime < end,
        )
        .order_by(ClassSession.id.asc())
        .all()
    )
    return [
        SessionInfo(
            session_id=r.id,
            session_datetime=r.session_datetime,
            faculty_name=r.name or f"Faculty ID {r.actual_faculty_id}",
            course_name=r.course_name or "N/A",
            batch_name=r.batch_name or "N/A",
        )
        for r in rows
    ]


def fetch_feedback(db: Session, session_ids: list[int], limit: int) -> list[dict]:
    rows = (
        db.query(
            FeedbackResponse.id,
            FeedbackResponse.session_id,
            FeedbackResponse.student_id,
            FeedbackResponse.response_text,
            SessionQuestion.question_text,
            SessionQuestion.feedback_question_id,
        )
        .outerjoin(SessionQuestion, FeedbackResponse.session_question_id == SessionQuestion.id)
        .filter(FeedbackResponse.session_id.in_(session_ids))
        .order_by(FeedbackResponse.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": r.id,
            "session_id": r.session_id,
            "student_id": r.student_id,
            "response_text": r.response_text,
            "question_text": r.question_text,
            "feedback_question_id": r.feedback_question_id,
        }
        for r in rows
    ]


def fetch_attendance(db: Session, session_ids: list[int], limit: int) -> list[dict]:
    rows = (
        db.query(AttendanceRecord.session_id, AttendanceRecord.user_id, AttendanceRecord.is_present)
        .filter(AttendanceRecord.session_id.in_(session_ids))
        .order_by(AttendanceRecord.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"session_id": r.session_id, "user_id": r.user_id, "is_present": bool(r.is_present)}
        for r in rows
    ]


def fetch_quiz_scores(db: Session, session_ids: list[int], limit: int) -> list[dict]:
    rows = (
        db.query(QuizScore.session_id, QuizScore.quiz_score, QuizScore.max_quiz_score)
        .filter(QuizScore.session_id.in_(session_ids))
        .order_by(QuizScore.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"session_id": r.session_id, "quiz_score": r.quiz_score, "max_quiz_score": r.max_quiz_score}
        for r in rows
    ]


def _with_session(session_factory: Callable[[], Session], fn, *args):
    db = session_factory()
    try:
        return fn(db, *args)
    finally:
        db.close()


async def load_session_rows(
    session_factory: Callable[[], Session],
    batch_id: int,
    day: date,
    *,
    tz_name: str,
    feedback_limit: int,
    attendance_limit: int,
    quiz_limit: int,
) -> SessionRows:
    """Fetch sessions for the batch/day and group their source rows.

    The three source fetches are joined all-or-nothing: any query error
    propagates to the caller.
    """
    start, end = day_bounds(day, tz_name)
    sessions = await asyncio.to_thread(_with_session, session_factory, fetch_sessions, batch_id, start, end)
    if not sessions:
        return SessionRows(sessions=[])

    session_ids = [s.session_id for s in sessions]
    logger.info("Processing %d sessions for batch %s on %s: %s", len(sessions), batch_id, day, session_ids)

    feedback, attendance, quiz = await asyncio.gather(
        asyncio.to_thread(_with_session, session_factory, fetch_feedback, session_ids, feedback_limit),
        asyncio.to_thread(_with_session, session_factory, fetch_attendance, session_ids, attendance_limit),
        asyncio.to_thread(_with_session, session_factory, fetch_quiz_scores, session_ids, quiz_limit),
    )
    logger.info(
        "Rows retrieved: feedback=%d attendance=%d quiz=%d",
        len(feedback), len(attendance), len(quiz),
    )

    return SessionRows(
        sessions=sessions,
        feedback=group_by_session(feedback),
        attendance=group_by_session(attendance),
        quiz=group_by_session(quiz),
    )


def session_ids_for_day(db: Session, batch_id: int, day: date, tz_name: str) -> list[int]:
    start, end = day_bounds(day, tz_name)
    return [s.session_id for s in fetch_sessions(db, batch_id, start, end)]


def format_local_datetime(value: datetime, tz_name: str) -> str:
    """Render a naive UTC datetime as local "dd/mm/yyyy, h:mm:ss am"."""
    local = value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    return f"{local:%d/%m/%Y}, {hour}:{local:%M:%S} {'pm' if local.hour >= 12 else 'am'}"
