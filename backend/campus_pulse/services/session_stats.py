"""Per-session statistics: attendance, feedback response, ratings and quiz distribution.

Percentages and the average rating are returned as display strings
("80.0%", "4.33") because the dashboards and the spreadsheet consume them
verbatim. Absent data is "N/A" for those string fields and None for the
numeric quiz fields.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

NOT_AVAILABLE = "N/A"

RATING_LABELS = {
    "Excellent": 5,
    "Very Good": 4,
    "Good": 3,
    "Fair": 2,
    "Poor": 1,
}

LOW_RATING_THRESHOLD = 4
HIGH_SCORE_PCT = 90.0
LOW_SCORE_PCT = 40.0


def round_half_up(value: float, decimals: int = 0) -> Decimal:
    """Round the exact binary value of a float, ties away from zero.

    Matches what the dashboards and the sheet have always shown, e.g.
    4.125 -> "4.13" where format() would give "4.12".
    """
    return Decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def fixed(value: float, decimals: int) -> str:
    return str(round_half_up(value, decimals))


def format_pct(numerator: float, denominator: float, decimals: int = 1) -> str:
    """Format numerator/denominator as a percentage string, "N/A" on a zero denominator."""
    if not denominator:
        return NOT_AVAILABLE
    return f"{fixed(numerator * 100 / denominator, decimals)}%"


def parse_pct(value: Optional[str]) -> Optional[float]:
    """Inverse of format_pct for prompt heuristics: "80.0%" -> 80.0, "N/A" -> None."""
    if value is None or value == NOT_AVAILABLE:
        return None
    try:
        return float(str(value).rstrip("%"))
    except ValueError:
        return None


def rating_value(response: Optional[str]) -> Optional[int]:
    """Map a rating answer to 1..5.

    Numeric answers inside [1, 5] are rounded to the nearest integer; the five
    fixed English labels map to their score. Anything else is None.
    """
    if response is None:
        return None
    text = str(response).strip()
    try:
        number = float(text)
    except ValueError:
        number = None
    if number is not None and not math.isnan(number) and 1 <= number <= 5:
        return int(round_half_up(number))
    return RATING_LABELS.get(text)


# ─────────────────────────────────────────────────────────────────────────────
# Attendance / feedback
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class EngagementStats:
    present_students: int
    total_registered: int
    attendance_rate: str
    unique_respondents: int
    response_rate: str
    average_rating: str
    low_ratings_count: int
    low_ratings_percentage: str


def engagement_stats(
    attendance_rows: list[dict],
    feedback_rows: list[dict],
    rating_question_id: int,
) -> EngagementStats:
    """Attendance rate, response rate and rating summary for one session."""
    present = sum(1 for r in attendance_rows if r.get("is_present"))
    total = len(attendance_rows)
    respondents = len({r.get("student_id") for r in feedback_rows})

    ratings = [
        value
        for value in (
            rating_value(r.get("response_text"))
            for r in feedback_rows
            if r.get("feedback_question_id") == rating_question_id
        )
        if value is not None
    ]
    low_count = sum(1 for value in ratings if value < LOW_RATING_THRESHOLD)

    if ratings:
        average_rating = fixed(sum(ratings) / len(ratings), 2)
    else:
        average_rating = NOT_AVAILABLE

    return EngagementStats(
        present_students=present,
        total_registered=total,
        attendance_rate=format_pct(present, total),
        unique_respondents=respondents,
        response_rate=format_pct(respondents, present),
        average_rating=average_rating,
        low_ratings_count=low_count,
        low_ratings_percentage=format_pct(low_count, len(ratings)),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Quiz
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class QuizStats:
    avg_quiz_score: Optional[float] = None
    max_quiz_score: Optional[float] = None  # highest student score
    min_quiz_score: Optional[float] = None
    stddev_quiz_score: Optional[float] = None
    quiz_percentage: str = NOT_AVAILABLE
    above_90_count: Optional[int] = None
    below_40_count: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def quiz_stats(rows: list[dict]) -> QuizStats:
    """Distribution of per-student quiz scores for one session.

    The maximum possible score comes from the session's first quiz row. With
    no rows, or a zero/missing maximum, every numeric field is None.
    """
    if not rows:
        return QuizStats()

    max_possible = rows[0].get("max_quiz_score")
    if not max_possible:
        return QuizStats()

    scores = [float(r["quiz_score"]) for r in rows]
    avg = sum(scores) / len(scores)
    variance = sum((s - avg) ** 2 for s in scores) / len(scores)

    above_90 = 0
    below_40 = 0
    for score in scores:
        pct = score * 100 / max_possible
        if pct >= HIGH_SCORE_PCT:
            above_90 += 1
        if pct < LOW_SCORE_PCT:
            below_40 += 1

    return QuizStats(
        avg_quiz_score=float(round_half_up(avg, 2)),
        max_quiz_score=max(scores),
        min_quiz_score=min(scores),
        stddev_quiz_score=float(round_half_up(math.sqrt(variance), 2)),
        quiz_percentage=format_pct(avg, max_possible, decimals=2),
        above_90_count=above_90,
        below_40_count=below_40,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Derived health indicators (fed to the summary prompt and persisted)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class SessionHealth:
    score: str
    issues: list[str]
    strengths: list[str]


def session_health(engagement: EngagementStats, quiz: QuizStats) -> SessionHealth:
    """Combine attendance, response and rating into a 0-100 score plus flags."""
    attendance = parse_pct(engagement.attendance_rate) or 0.0
    response = parse_pct(engagement.response_rate) or 0.0
    rating = parse_pct(engagement.average_rating)
    rating_pct = rating * 20 if rating is not None else 0.0

    score = fixed((attendance + response + rating_pct) / 3, 1)

    issues = []
    if attendance < 70:
        issues.append("Low attendance")
    if response < 50:
        issues.append("Poor response rate")
    low_pct = parse_pct(engagement.low_ratings_percentage)
    if low_pct is not None and low_pct > 25:
        issues.append("High dissatisfaction")
    if quiz.avg_quiz_score is not None and quiz.avg_quiz_score < 60:
        issues.append("Poor quiz performance")

    strengths = []
    if attendance >= 85:
        strengths.append("Excellent attendance")
    if response >= 80:
        strengths.append("High engagement")
    if rating is not None and rating >= 4.5:
        strengths.append("High satisfaction")
    if quiz.above_90_count:
        strengths.append(f"{quiz.above_90_count} students excelling")

    return SessionHealth(score=score, issues=issues, strengths=strengths)
