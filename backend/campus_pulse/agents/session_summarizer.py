"""Session summarizer agent: narrates a session's analytics for the admin dashboard."""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from campus_pulse.services.session_stats import SessionHealth, format_pct

logger = logging.getLogger(__name__)

SUMMARY_FAILED = "Error generating summary."
SUMMARY_EMPTY = "No summary generated."

POSITIVE_WORDS = ("good", "great", "excellent", "helpful", "clear", "understand", "learned")
CONCERN_WORDS = ("confused", "difficult", "hard", "unclear", "fast", "slow", "problem")


@dataclass
class SummaryOutcome:
    """Result of narrating one session: the text, or the error that replaced it."""

    session_id: int
    summary: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _text_feedback(answers: list[dict]) -> str:
    lines = []
    positive = 0
    concern = 0
    for qa in answers:
        answer = (qa.get("answer") or "").strip()
        if not answer:
            continue
        lowered = answer.lower()
        if any(word in lowered for word in POSITIVE_WORDS):
            positive += 1
        if any(word in lowered for word in CONCERN_WORDS):
            concern += 1
        lines.append(f"• {qa.get('question') or 'N/A'}: {answer}")

    if not lines:
        return ""
    text = "\nKey Student Feedback:\n" + "\n".join(lines) + "\n"
    if positive or concern:
        text += f"\nFeedback Sentiment: {positive} positive, {concern} concerns\n"
    return text


def _choice_breakdown(answers: list[dict]) -> str:
    # question kind -> (question text, answer counts), in first-seen order
    grouped: dict[int, tuple[str, Counter]] = {}
    for qa in answers:
        kind = qa.get("feedback_question_id")
        if kind not in grouped:
            grouped[kind] = (qa.get("question") or "N/A", Counter())
        if qa.get("answer"):
            grouped[kind][1][qa["answer"]] += 1

    if not grouped:
        return ""
    text = "\nStudent Satisfaction Breakdown:\n"
    for question, counts in grouped.values():
        total = sum(counts.values())
        text += f"• {question}:\n"
        for response, count in counts.most_common():
            text += f"  - {response}: {count} ({format_pct(count, total)})\n"
    return text


def build_feedback_digest(
    answers: list[dict],
    health: SessionHealth,
    choice_question_ids: list[int],
    text_question_ids: list[int],
) -> str:
    """Health score, strengths/issues, free-text answers and choice breakdowns."""
    digest = f"\nSession Health Score: {health.score}%\n"
    if health.strengths:
        digest += f"\nStrengths: {', '.join(health.strengths)}\n"
    if health.issues:
        digest += f"\nAreas for Improvement: {', '.join(health.issues)}\n"

    digest += _text_feedback([qa for qa in answers if qa.get("feedback_question_id") in text_question_ids])
    digest += _choice_breakdown([qa for qa in answers if qa.get("feedback_question_id") in choice_question_ids])
    return digest


def build_prompt(record: dict, session_time: str, health: SessionHealth, digest: str) -> str:
    """Fixed-template analysis prompt for one session."""
    return f"""
Analyze this comprehensive session data:

BASIC METRICS:
- Mentor: {record['faculty_name']}
- Course: {record['course_name']}
- Session Date/Time: {session_time}
- Attendance: {record['present_students']}/{record['total_registered']} ({record['attendance_rate']})
- Feedback Responses: {record['unique_respondents']} ({record['response_rate']} of present students)
- Average Rating: {record['average_rating']}/5
- Low Ratings (1-3): {record['low_ratings_count']} ({record['low_ratings_percentage']})

PERFORMANCE INDICATORS:
- Quiz Avg Score: {record['avg_quiz_score']}
- Students Above 90%: {record['above_90_count']}
- Students Below 40%: {record['below_40_count']}
- Overall Session Health: {health.score}%

DETAILED FEEDBACK ANALYSIS:
{digest}

TASK: Write a comprehensive 3-4 sentence analysis covering:
1. Overall session effectiveness and student engagement
2. Key strengths and areas needing attention
3. Specific recommendations for improvement
4. Student learning outcomes and satisfaction trends"""


async def summarize_session(
    client,
    session_id: int,
    prompt: str,
    max_tokens: int,
    temperature: float,
) -> SummaryOutcome:
    """Narrate one session. Never raises: failures become the placeholder summary."""
    try:
        raw = await client.chat(
            system="",
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except Exception as e:
        logger.error("Error generating summary for session %s: %s", session_id, e)
        return SummaryOutcome(session_id=session_id, summary=SUMMARY_FAILED, error=str(e) or type(e).__name__)

    text = (raw or "").strip()
    return SummaryOutcome(session_id=session_id, summary=text or SUMMARY_EMPTY)


async def summarize_sessions(
    client,
    prompts: dict[int, str],
    max_tokens: int,
    temperature: float,
) -> dict[int, SummaryOutcome]:
    """Narrate every session concurrently; each outcome is settled independently."""
    outcomes = await asyncio.gather(*(
        summarize_session(client, session_id, prompt, max_tokens, temperature)
        for session_id, prompt in prompts.items()
    ))
    failed = [o.session_id for o in outcomes if not o.ok]
    if failed:
        logger.warning("Summaries failed for %d of %d sessions: %s", len(failed), len(outcomes), failed)
    return {o.session_id: o for o in outcomes}
