"""Session analytics schemas."""

import datetime as dt
from typing import Optional

from pydantic import BaseModel


class AnalysisRequest(BaseModel):
    date: dt.date


class QuizAnalyticsOut(BaseModel):
    session_id: int
    analysis_date: dt.date
    faculty_name: Optional[str] = None
    course_name: Optional[str] = None
    batch_name: Optional[str] = None
    session_datetime: Optional[dt.datetime] = None
    avg_quiz_score: Optional[float] = None
    max_quiz_score: Optional[float] = None
    min_quiz_score: Optional[float] = None
    stddev_quiz_score: Optional[float] = None
    quiz_percentage: str
    above_90_count: Optional[int] = None
    below_40_count: Optional[int] = None

    class Config:
        from_attributes = True


class SessionAnalyticsOut(QuizAnalyticsOut):
    id: int
    present_students: int
    total_registered: int
    attendance_rate: str          # "80.0%" | "N/A"
    unique_respondents: int
    response_rate: str
    average_rating: str           # "4.33" | "N/A"
    low_ratings_count: int
    low_ratings_percentage: str
    session_health_score: Optional[str] = None
    identified_issues: Optional[str] = None
    key_strengths: Optional[str] = None
    summary: Optional[str] = None

    class Config:
        from_attributes = True
