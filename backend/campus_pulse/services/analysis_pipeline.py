"""Session analysis pipeline: fetch → group → compute → narrate → persist → export.

Runs for one batch on one local calendar day. Clients are passed in through
AnalysisClients; nothing here reaches for a module-level client.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_pulse.agents.session_summarizer import build_feedback_digest, build_prompt, summarize_sessions
from campus_pulse.config import Settings
from campus_pulse.schemas.analytics import SessionAnalyticsOut
from campus_pulse.services.analytics_store import analytics_for_sessions, upsert_analytics
from campus_pulse.services.session_rows import (
    SessionInfo,
    SessionRows,
    format_local_datetime,
    load_session_rows,
    session_ids_for_day,
)
from campus_pulse.services.session_stats import engagement_stats, quiz_stats, session_health, SessionHealth

logger = logging.getLogger(__name__)

# Spreadsheet column order
SHEET_COLUMNS = [
    "session_id",
    "faculty_name",
    "course_name",
    "session_datetime",
    "present_students",
    "total_registered",
    "attendance_rate",
    "unique_respondents",
    "response_rate",
    "average_rating",
    "low_ratings_count",
    "low_ratings_percentage",
    "avg_quiz_score",
    "max_quiz_score",
    "min_quiz_score",
    "stddev_quiz_score",
    "quiz_percentage",
    "above_90_count",
    "below_40_count",
    "summary",
    "batch_name",
]


class AnalysisError(Exception):
    """Base class for pipeline failures surfaced to the caller."""

    status_code = 500


class NoSessionsFound(AnalysisError):
    status_code = 404


class AnalyticsPersistError(AnalysisError):
    status_code = 500


@dataclass
class AnalysisClients:
    session_factory: Callable[[], Session]
    ai: object      # anything with an async chat(system, messages, max_tokens, temperature)
    sheets: object  # anything with an async append_rows(cell_range, rows)


@dataclass
class ComputedSession:
    record: dict
    health: SessionHealth
    answers: list[dict]


def compute_session(info: SessionInfo, rows: SessionRows, day: date, rating_question_id: int) -> ComputedSession:
    """All statistics for one session, as a session_analytics row minus the summary."""
    feedback = rows.feedback.get(info.session_id, [])
    attendance = rows.attendance.get(info.session_id, [])
    quiz = rows.quiz.get(info.session_id, [])

    engagement = engagement_stats(attendance, feedback, rating_question_id)
    quiz_result = quiz_stats(quiz)
    health = session_health(engagement, quiz_result)

    record = {
        "session_id": info.session_id,
        "analysis_date": day,
        "faculty_name": info.faculty_name,
        "course_name": info.course_name,
        "batch_name": info.batch_name,
        "session_datetime": info.session_datetime,
        "present_students": engagement.present_students,
        "total_registered": engagement.total_registered,
        "attendance_rate": engagement.attendance_rate,
        "unique_respondents": engagement.unique_respondents,
        "response_rate": engagement.response_rate,
        "average_rating": engagement.average_rating,
        "low_ratings_count": engagement.low_ratings_count,
        "low_ratings_percentage": engagement.low_ratings_percentage,
        **quiz_result.to_dict(),
        "session_health_score": health.score,
        "identified_issues": ", ".join(health.issues) or "None",
        "key_strengths": ", ".join(health.strengths) or "None",
    }
    answers = [
        {
            "question": r.get("question_text") or "N/A",
            "answer": r.get("response_text"),
            "feedback_question_id": r.get("feedback_question_id"),
        }
        for r in feedback
    ]
    return ComputedSession(record=record, health=health, answers=answers)


def sheet_row(record: dict, tz_name: str) -> list:
    row = []
    for column in SHEET_COLUMNS:
        value = record.get(column)
        if column == "session_datetime" and value is not None:
            value = format_local_datetime(value, tz_name)
        row.append("" if value is None else value)
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Thread-bound database steps
# ─────────────────────────────────────────────────────────────────────────────

def _existing_analytics(session_factory, batch_id: int, day: date, tz_name: str) -> list[SessionAnalyticsOut]:
    """Stored rows for the batch-day, or [] unless every session of that day has one."""
    db = session_factory()
    try:
        session_ids = session_ids_for_day(db, batch_id, day, tz_name)
        stored = analytics_for_sessions(db, session_ids, day)
        if len(stored) < len(session_ids):
            if stored:
                logger.info(
                    "Analytics cover %d of %d sessions for batch %s on %s; recomputing",
                    len(stored), len(session_ids), batch_id, day,
                )
            return []
        return stored
    finally:
        db.close()


def _persist(session_factory, records: list[dict], day: date) -> list[SessionAnalyticsOut]:
    db = session_factory()
    try:
        upsert_analytics(db, records)
        db.commit()
        return analytics_for_sessions(db, [r["session_id"] for r in records], day)
    except (SQLAlchemyError, NotImplementedError) as e:
        db.rollback()
        logger.error("Error upserting analytics for %s: %s", day, e)
        raise AnalyticsPersistError("Failed to save analytics data") from e
    finally:
        db.close()


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────

async def run_session_analysis(
    clients: AnalysisClients,
    settings: Settings,
    batch_id: int,
    day: date,
    refresh: bool = False,
) -> list[SessionAnalyticsOut]:
    """Compute, persist and export analytics for every session of a batch on a day.

    Stored analytics are returned as-is when every session of the day already
    has a row and refresh is not set; otherwise the whole day is recomputed.
    Raises NoSessionsFound when the batch has no sessions that day and
    AnalyticsPersistError when the upsert fails.
    """
    tz_name = settings.TIMEZONE

    if not refresh:
        existing = await asyncio.to_thread(_existing_analytics, clients.session_factory, batch_id, day, tz_name)
        if existing:
            logger.info("Analytics already exist for batch %s on %s; returning %d rows", batch_id, day, len(existing))
            return existing

    rows = await load_session_rows(
        clients.session_factory,
        batch_id,
        day,
        tz_name=tz_name,
        feedback_limit=settings.FEEDBACK_ROW_LIMIT,
        attendance_limit=settings.ATTENDANCE_ROW_LIMIT,
        quiz_limit=settings.QUIZ_ROW_LIMIT,
    )
    if not rows.sessions:
        raise NoSessionsFound("No sessions found for the given date and batch.")

    computed = [compute_session(info, rows, day, settings.RATING_QUESTION_ID) for info in rows.sessions]

    prompts = {}
    for item in computed:
        digest = build_feedback_digest(
            item.answers,
            item.health,
            settings.CHOICE_QUESTION_IDS,
            settings.TEXT_QUESTION_IDS,
        )
        session_time = format_local_datetime(item.record["session_datetime"], tz_name)
        prompts[item.record["session_id"]] = build_prompt(item.record, session_time, item.health, digest)

    outcomes = await summarize_sessions(
        clients.ai,
        prompts,
        max_tokens=settings.SUMMARY_MAX_TOKENS,
        temperature=settings.SUMMARY_TEMPERATURE,
    )

    records = [{**item.record, "summary": outcomes[item.record["session_id"]].summary} for item in computed]

    persisted = await asyncio.to_thread(_persist, clients.session_factory, records, day)

    try:
        await clients.sheets.append_rows(settings.SHEET_RANGE, [sheet_row(r, tz_name) for r in records])
    except Exception as e:
        # The table is the source of truth; the sheet only mirrors it
        logger.error("Sheets export failed for batch %s on %s: %s", batch_id, day, e)

    logger.info("Processed and saved %d sessions for batch %s on %s", len(persisted), batch_id, day)
    return persisted
