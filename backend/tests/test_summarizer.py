"""Tests for the session summarizer agent (prompt assembly and per-session isolation)."""

import asyncio

from campus_pulse.agents.session_summarizer import (
    SUMMARY_EMPTY,
    SUMMARY_FAILED,
    build_feedback_digest,
    build_prompt,
    summarize_session,
    summarize_sessions,
)
from campus_pulse.services.session_stats import SessionHealth

from fakes import FakeAI

CHOICE_IDS = [5, 6, 7, 8]
TEXT_IDS = [4, 9, 10]


def _record(**overrides):
    record = {
        "faculty_name": "Dr. Rao",
        "course_name": "Data Structures",
        "present_students": 8,
        "total_registered": 10,
        "attendance_rate": "80.0%",
        "unique_respondents": 6,
        "response_rate": "75.0%",
        "average_rating": "4.33",
        "low_ratings_count": 1,
        "low_ratings_percentage": "16.7%",
        "avg_quiz_score": 70.0,
        "above_90_count": 1,
        "below_40_count": 0,
    }
    record.update(overrides)
    return record


class TestFeedbackDigest:
    """Test the feedback section embedded in the prompt."""

    def test_health_strengths_and_issues(self):
        health = SessionHealth(score="76.4", issues=["Low attendance"], strengths=["High engagement"])
        digest = build_feedback_digest([], health, CHOICE_IDS, TEXT_IDS)

        assert "Session Health Score: 76.4%" in digest
        assert "Strengths: High engagement" in digest
        assert "Areas for Improvement: Low attendance" in digest
        assert "Key Student Feedback" not in digest
        assert "Student Satisfaction Breakdown" not in digest

    def test_text_answers_and_sentiment(self):
        answers = [
            {"question": "What could improve?", "answer": "Clear examples, very helpful", "feedback_question_id": 4},
            {"question": "What could improve?", "answer": "Too fast and a bit confused", "feedback_question_id": 9},
            {"question": "What could improve?", "answer": "   ", "feedback_question_id": 10},
        ]
        digest = build_feedback_digest(answers, SessionHealth("50.0", [], []), CHOICE_IDS, TEXT_IDS)

        assert "• What could improve?: Clear examples, very helpful" in digest
        assert "• What could improve?: Too fast and a bit confused" in digest
        assert "Feedback Sentiment: 1 positive, 1 concerns" in digest

    def test_choice_breakdown_sorted_by_count(self):
        answers = [
            {"question": "How was the pace?", "answer": "Too fast", "feedback_question_id": 5},
            {"question": "How was the pace?", "answer": "Just right", "feedback_question_id": 5},
            {"question": "How was the pace?", "answer": "Just right", "feedback_question_id": 5},
        ]
        digest = build_feedback_digest(answers, SessionHealth("50.0", [], []), CHOICE_IDS, TEXT_IDS)

        assert "• How was the pace?:" in digest
        right = digest.index("- Just right: 2 (66.7%)")
        fast = digest.index("- Too fast: 1 (33.3%)")
        assert right < fast

    def test_rating_answers_not_in_digest(self):
        answers = [{"question": "Rate the session", "answer": "Excellent", "feedback_question_id": 3}]
        digest = build_feedback_digest(answers, SessionHealth("50.0", [], []), CHOICE_IDS, TEXT_IDS)
        assert "Excellent" not in digest


class TestPrompt:
    def test_prompt_embeds_metrics(self):
        health = SessionHealth(score="76.4", issues=[], strengths=[])
        prompt = build_prompt(_record(), "01/03/2024, 10:00:00 am", health, "DIGEST")

        assert "- Mentor: Dr. Rao" in prompt
        assert "- Session Date/Time: 01/03/2024, 10:00:00 am" in prompt
        assert "- Attendance: 8/10 (80.0%)" in prompt
        assert "- Feedback Responses: 6 (75.0% of present students)" in prompt
        assert "- Average Rating: 4.33/5" in prompt
        assert "- Low Ratings (1-3): 1 (16.7%)" in prompt
        assert "- Overall Session Health: 76.4%" in prompt
        assert "DIGEST" in prompt

    def test_prompt_with_missing_quiz(self):
        record = _record(avg_quiz_score=None, above_90_count=None, below_40_count=None)
        prompt = build_prompt(record, "t", SessionHealth("0.0", [], []), "")
        assert "- Quiz Avg Score: None" in prompt


class TestSummarize:
    """Test narration outcomes."""

    def test_success_trims_reply(self):
        ai = FakeAI()
        outcome = asyncio.run(summarize_session(ai, 11, "prompt", max_tokens=800, temperature=0.2))

        assert outcome.ok
        assert outcome.summary == "Generated summary."
        assert ai.calls[0]["max_tokens"] == 800
        assert ai.calls[0]["temperature"] == 0.2

    def test_empty_reply_placeholder(self):
        outcome = asyncio.run(summarize_session(FakeAI(reply="   "), 11, "prompt", 800, 0.2))
        assert outcome.ok
        assert outcome.summary == SUMMARY_EMPTY

    def test_failure_becomes_placeholder(self):
        outcome = asyncio.run(summarize_session(FakeAI(fail_for=["prompt"]), 11, "prompt", 800, 0.2))
        assert not outcome.ok
        assert outcome.summary == SUMMARY_FAILED
        assert "quota" in outcome.error

    def test_one_failure_does_not_affect_others(self):
        ai = FakeAI(fail_for=["Mentor: A"])
        prompts = {1: "Mentor: A", 2: "Mentor: B", 3: "Mentor: C"}
        outcomes = asyncio.run(summarize_sessions(ai, prompts, 800, 0.2))

        assert set(outcomes) == {1, 2, 3}
        assert outcomes[1].summary == SUMMARY_FAILED
        assert outcomes[2].summary == "Generated summary."
        assert outcomes[3].summary == "Generated summary."
        assert len(ai.calls) == 3
