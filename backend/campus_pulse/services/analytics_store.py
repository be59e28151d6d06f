"""Analytics store: upsert and read-back of session_analytics rows."""

from datetime import date, datetime, timezone
from typing import Iterable

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from campus_pulse.models.session_analytics import SessionAnalytics
from campus_pulse.schemas.analytics import SessionAnalyticsOut, QuizAnalyticsOut

CONFLICT_COLUMNS = ("session_id", "analysis_date")

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def upsert_analytics(db: Session, records: Iterable[dict]) -> int:
    """Insert records, overwriting any existing row for (session_id, analysis_date).

    One statement for the whole batch; the caller owns commit/rollback.
    """
    now = datetime.now(timezone.utc)
    payload = [{**record, "created_at": now, "updated_at": now} for record in records]
    if not payload:
        return 0

    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")

    stmt = insert(SessionAnalytics.__table__).values(payload)
    update_columns = {
        column: stmt.excluded[column]
        for column in payload[0].keys()
        if column not in CONFLICT_COLUMNS and column not in ("id", "created_at")
    }
    stmt = stmt.on_conflict_do_update(index_elements=list(CONFLICT_COLUMNS), set_=update_columns)
    db.execute(stmt)
    return len(payload)


def analytics_for_sessions(db: Session, session_ids: list[int], day: date) -> list[SessionAnalyticsOut]:
    if not session_ids:
        return []
    rows = (
        db.query(SessionAnalytics)
        .filter(SessionAnalytics.analysis_date == day, SessionAnalytics.session_id.in_(session_ids))
        .order_by(SessionAnalytics.session_datetime.asc(), SessionAnalytics.session_id.asc())
        .all()
    )
    return [SessionAnalyticsOut.model_validate(r) for r in rows]


def analytics_for_date(db: Session, day: date) -> list[SessionAnalyticsOut]:
    rows = (
        db.query(SessionAnalytics)
        .filter(SessionAnalytics.analysis_date == day)
        .order_by(SessionAnalytics.session_datetime.asc(), SessionAnalytics.session_id.asc())
        .all()
    )
    return [SessionAnalyticsOut.model_validate(r) for r in rows]


def quiz_analytics_for_date(db: Session, day: date) -> list[QuizAnalyticsOut]:
    rows = (
        db.query(SessionAnalytics)
        .filter(SessionAnalytics.analysis_date == day)
        .order_by(SessionAnalytics.session_datetime.asc(), SessionAnalytics.session_id.asc())
        .all()
    )
    return [QuizAnalyticsOut.model_validate(r) for r in rows]


def available_dates(db: Session) -> list[date]:
    """Distinct analysis dates, newest first."""
    rows = (
        db.query(SessionAnalytics.analysis_date)
        .distinct()
        .order_by(SessionAnalytics.analysis_date.desc())
        .all()
    )
    return [r.analysis_date for r in rows]
