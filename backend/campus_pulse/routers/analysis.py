"""Analysis router: trigger and read back per-session analytics."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from campus_pulse.config import settings
from campus_pulse.database import get_db
from campus_pulse.middleware.auth import require_admin
from campus_pulse.middleware.rate_limit import limiter
from campus_pulse.models.dashboard_user import DashboardUser
from campus_pulse.schemas.analytics import AnalysisRequest, SessionAnalyticsOut, QuizAnalyticsOut
from campus_pulse.services.analysis_pipeline import AnalysisClients, AnalysisError, run_session_analysis
from campus_pulse.services.analytics_store import analytics_for_date, available_dates, quiz_analytics_for_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


def get_analysis_clients(request: Request) -> AnalysisClients:
    """Clients built in the app lifespan."""
    return request.app.state.analysis_clients


@router.post("/feedback/{batch_id}", response_model=list[SessionAnalyticsOut])
@limiter.limit(settings.ANALYSIS_RATE_LIMIT)
async def analyze_batch_day(
    request: Request,
    batch_id: int,
    req: AnalysisRequest,
    refresh: bool = Query(False),
    clients: AnalysisClients = Depends(get_analysis_clients),
    current_user: DashboardUser = Depends(require_admin),
):
    """Compute (or return cached) analytics for every session of a batch on a date.

    Stored rows are reused only when every session of the day has one; a
    session added later triggers a full recompute. Pass refresh=true to force
    it. The upsert keeps one row per session and date.
    """
    try:
        return await run_session_analysis(clients, settings, batch_id, req.date, refresh=refresh)
    except AnalysisError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception:
        logger.exception("Session analysis failed for batch %s on %s", batch_id, req.date)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/analytics", response_model=list[SessionAnalyticsOut])
def get_analytics_by_date(
    date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: DashboardUser = Depends(require_admin),
):
    """Previously computed analytics for a date, ordered by session time."""
    return analytics_for_date(db, date)


@router.get("/analytics/dates", response_model=list[date])
def get_analysis_dates(
    db: Session = Depends(get_db),
    current_user: DashboardUser = Depends(require_admin),
):
    """Dates that have analytics, newest first."""
    return available_dates(db)


@router.get("/quiz", response_model=list[QuizAnalyticsOut])
def get_quiz_analytics_by_date(
    date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: DashboardUser = Depends(require_admin),
):
    """Quiz columns only, for a date."""
    return quiz_analytics_for_date(db, date)
