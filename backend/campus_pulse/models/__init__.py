"""SQLAlchemy ORM models."""

from campus_pulse.models.dashboard_user import DashboardUser
from campus_pulse.models.profile import Profile
from campus_pulse.models.class_session import Batch, Course, CourseSection, ClassSession
from campus_pulse.models.attendance import AttendanceRecord
from campus_pulse.models.feedback import SessionQuestion, FeedbackResponse
from campus_pulse.models.quiz_score import QuizScore
from campus_pulse.models.session_analytics import SessionAnalytics

__all__ = [
    "DashboardUser",
    "Profile",
    "Batch",
    "Course",
    "CourseSection",
    "ClassSession",
    "AttendanceRecord",
    "SessionQuestion",
    "FeedbackResponse",
    "QuizScore",
    "SessionAnalytics",
]
