"""Tests for the session analysis pipeline against a temporary SQLite database."""

import asyncio
from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from campus_pulse.agents.session_summarizer import SUMMARY_FAILED
from campus_pulse.config import settings
from campus_pulse.models import ClassSession, SessionAnalytics
from campus_pulse.services import analysis_pipeline, analytics_store, session_rows
from campus_pulse.services.analysis_pipeline import (
    AnalysisClients,
    AnalyticsPersistError,
    NoSessionsFound,
    SHEET_COLUMNS,
    run_session_analysis,
)
from campus_pulse.services.session_rows import day_bounds, format_local_datetime, load_session_rows

from fakes import FakeAI, FakeSheets

DAY = date(2024, 3, 1)


def _run(factory, ai=None, sheets=None, batch_id=1, day=DAY, refresh=False):
    clients = AnalysisClients(session_factory=factory, ai=ai or FakeAI(), sheets=sheets or FakeSheets())
    return asyncio.run(run_session_analysis(clients, settings, batch_id, day, refresh=refresh))


def _analytics_count(factory):
    db = factory()
    try:
        return db.query(SessionAnalytics).count()
    finally:
        db.close()


class TestDayWindow:
    def test_ist_day_bounds_in_utc(self):
        start, end = day_bounds(DAY, "Asia/Kolkata")
        assert start == datetime(2024, 2, 29, 18, 30)
        assert end == datetime(2024, 3, 1, 18, 30)

    def test_local_datetime_format(self):
        assert format_local_datetime(datetime(2024, 3, 1, 4, 30), "Asia/Kolkata") == "01/03/2024, 10:00:00 am"
        assert format_local_datetime(datetime(2024, 3, 1, 8, 30), "Asia/Kolkata") == "01/03/2024, 2:00:00 pm"


class TestRowFetch:
    """Test fetching and grouping of source rows."""

    def test_only_batch_sessions_on_the_day(self, seeded_factory):
        rows = asyncio.run(load_session_rows(
            seeded_factory, 1, DAY,
            tz_name="Asia/Kolkata", feedback_limit=100, attendance_limit=100, quiz_limit=100,
        ))

        assert rows.session_ids == [11, 12]
        assert len(rows.attendance[11]) == 10
        assert 12 not in rows.attendance
        assert len(rows.quiz[11]) == 4
        assert rows.sessions[0].faculty_name == "Dr. Rao"
        assert rows.sessions[1].course_name == "Statistics"
        assert rows.sessions[0].batch_name == "Batch 2024"

    def test_row_caps_bound_results(self, seeded_factory):
        rows = asyncio.run(load_session_rows(
            seeded_factory, 1, DAY,
            tz_name="Asia/Kolkata", feedback_limit=2, attendance_limit=3, quiz_limit=1,
        ))
        assert sum(len(v) for v in rows.feedback.values()) == 2
        assert sum(len(v) for v in rows.attendance.values()) == 3
        assert sum(len(v) for v in rows.quiz.values()) == 1

    def test_no_sessions_is_empty(self, seeded_factory):
        rows = asyncio.run(load_session_rows(
            seeded_factory, 1, date(2024, 3, 5),
            tz_name="Asia/Kolkata", feedback_limit=100, attendance_limit=100, quiz_limit=100,
        ))
        assert rows.sessions == []


class TestRunSessionAnalysis:
    """End-to-end pipeline behaviour."""

    def test_example_batch_day(self, seeded_factory):
        result = _run(seeded_factory)

        assert [r.session_id for r in result] == [11, 12]
        a, b = result

        assert a.attendance_rate == "80.0%"
        assert a.present_students == 8
        assert a.total_registered == 10
        assert a.average_rating == "4.33"
        assert a.low_ratings_count == 1
        assert a.low_ratings_percentage == "16.7%"
        assert a.unique_respondents == 6
        assert a.response_rate == "75.0%"
        assert a.avg_quiz_score == 70.0
        assert a.min_quiz_score == 40
        assert a.max_quiz_score == 100
        assert a.stddev_quiz_score == 22.36
        assert a.above_90_count == 1
        assert a.below_40_count == 0
        assert a.quiz_percentage == "70.00%"
        assert a.summary == "Generated summary."
        assert a.faculty_name == "Dr. Rao"
        assert a.analysis_date == DAY

        assert b.attendance_rate == "N/A"
        assert b.response_rate == "N/A"
        assert b.average_rating == "N/A"
        assert b.quiz_percentage == "N/A"
        assert b.avg_quiz_score is None
        assert b.stddev_quiz_score is None
        assert b.above_90_count is None
        assert b.below_40_count is None

    def test_summary_failure_isolated(self, seeded_factory):
        result = _run(seeded_factory, ai=FakeAI(fail_for=["Dr. Rao"]))

        by_id = {r.session_id: r for r in result}
        assert by_id[11].summary == SUMMARY_FAILED
        assert by_id[12].summary == "Generated summary."

    def test_prompt_contains_session_feedback(self, seeded_factory):
        ai = FakeAI()
        _run(seeded_factory, ai=ai)

        rao_prompt = next(c["prompt"] for c in ai.calls if "Dr. Rao" in c["prompt"])
        assert "- Attendance: 8/10 (80.0%)" in rao_prompt
        assert "The examples were clear but the pace was fast" in rao_prompt
        assert "- Just right: 2 (66.7%)" in rao_prompt
        assert "01/03/2024, 10:00:00 am" in rao_prompt
        assert all(c["temperature"] == settings.SUMMARY_TEMPERATURE for c in ai.calls)
        assert all(c["max_tokens"] == settings.SUMMARY_MAX_TOKENS for c in ai.calls)

    def test_refresh_is_idempotent(self, seeded_factory):
        first = _run(seeded_factory)
        second = _run(seeded_factory, refresh=True)

        assert _analytics_count(seeded_factory) == 2
        assert [r.id for r in first] == [r.id for r in second]
        assert [r.average_rating for r in first] == [r.average_rating for r in second]

    def test_refresh_overwrites_changed_summary(self, seeded_factory):
        _run(seeded_factory)
        result = _run(seeded_factory, ai=FakeAI(reply="Second pass."), refresh=True)

        assert {r.summary for r in result} == {"Second pass."}
        assert _analytics_count(seeded_factory) == 2

    def test_existing_analytics_returned_without_recompute(self, seeded_factory):
        _run(seeded_factory)
        ai = FakeAI(reply="Should not be used.")
        sheets = FakeSheets()
        result = _run(seeded_factory, ai=ai, sheets=sheets)

        assert len(result) == 2
        assert ai.calls == []
        assert sheets.appends == []
        assert {r.summary for r in result} == {"Generated summary."}

    def test_no_sessions_raises(self, seeded_factory):
        with pytest.raises(NoSessionsFound):
            _run(seeded_factory, day=date(2024, 3, 5))
        with pytest.raises(NoSessionsFound):
            _run(seeded_factory, batch_id=99)

    def test_persist_failure_raises(self, seeded_factory, monkeypatch):
        def broken_upsert(db, records):
            raise OperationalError("INSERT INTO session_analytics", {}, Exception("disk full"))

        monkeypatch.setattr(analysis_pipeline, "upsert_analytics", broken_upsert)
        sheets = FakeSheets()
        with pytest.raises(AnalyticsPersistError):
            _run(seeded_factory, sheets=sheets)

        assert _analytics_count(seeded_factory) == 0
        assert sheets.appends == []

    def test_sheet_rows_appended(self, seeded_factory):
        sheets = FakeSheets()
        _run(seeded_factory, sheets=sheets)

        assert len(sheets.appends) == 1
        cell_range, rows = sheets.appends[0]
        assert cell_range == settings.SHEET_RANGE
        assert len(rows) == 2
        row = dict(zip(SHEET_COLUMNS, rows[0]))
        assert row["session_id"] == 11
        assert row["session_datetime"] == "01/03/2024, 10:00:00 am"
        assert row["attendance_rate"] == "80.0%"
        assert row["batch_name"] == "Batch 2024"
        empty_quiz = dict(zip(SHEET_COLUMNS, rows[1]))
        assert empty_quiz["avg_quiz_score"] == ""

    def test_sheet_failure_does_not_fail_request(self, seeded_factory):
        result = _run(seeded_factory, sheets=FakeSheets(fail=True))
        assert len(result) == 2
        assert _analytics_count(seeded_factory) == 2

    def test_unsupported_dialect_is_persist_error(self, seeded_factory, monkeypatch):
        monkeypatch.setattr(analytics_store, "_INSERTS", {})
        with pytest.raises(AnalyticsPersistError, match="Failed to save analytics data"):
            _run(seeded_factory)
        assert _analytics_count(seeded_factory) == 0

    def test_source_fetch_failure_fails_whole_run(self, seeded_factory, monkeypatch):
        def broken_quiz_fetch(db, session_ids, limit):
            raise OperationalError("SELECT student_quiz_scores", {}, Exception("connection reset"))

        monkeypatch.setattr(session_rows, "fetch_quiz_scores", broken_quiz_fetch)
        ai = FakeAI()
        sheets = FakeSheets()
        with pytest.raises(OperationalError):
            _run(seeded_factory, ai=ai, sheets=sheets)

        assert _analytics_count(seeded_factory) == 0
        assert ai.calls == []
        assert sheets.appends == []

    def test_session_added_after_run_triggers_recompute(self, seeded_factory):
        _run(seeded_factory)
        db = seeded_factory()
        try:
            # 16:00 IST, same batch and day
            db.add(ClassSession(id=15, session_datetime=datetime(2024, 3, 1, 10, 30), section_id=1, actual_faculty_id=2))
            db.commit()
        finally:
            db.close()

        ai = FakeAI()
        result = _run(seeded_factory, ai=ai)

        assert [r.session_id for r in result] == [11, 12, 15]
        assert len(ai.calls) == 3
        assert _analytics_count(seeded_factory) == 3
