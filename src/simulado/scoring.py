"""
Scoring and Reporting
=====================

Turns a completed quiz and the user's answers into a score report, a
plain-text transcript for download and a history entry.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from .config import settings
from .models import (
    Difficulty,
    HistoryItem,
    IncorrectDetail,
    QuizData,
    ScoreReport,
    Tier,
)

PASS_THRESHOLD = 70
BORDERLINE_THRESHOLD = 50
SUBJECT_MAX_CHARS = 35
NO_ANSWER = "none"
DATE_FORMAT = "%d/%m/%Y %H:%M"

TIER_HEADLINES = {
    Tier.PASS: ("PASSED", "Outstanding! You show an advanced command of the material."),
    Tier.BORDERLINE: ("BORDERLINE", "Good work, but there are still key points to review."),
    Tier.FAIL: ("FAILED", "We recommend reinforcing your studies on this topic."),
}


def percentage_of(correct: int, total: int) -> int:
    """Percentage rounded half up, 0 for an empty quiz."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def classify(percentage: int) -> Tier:
    if percentage >= PASS_THRESHOLD:
        return Tier.PASS
    if percentage >= BORDERLINE_THRESHOLD:
        return Tier.BORDERLINE
    return Tier.FAIL


def score(quiz: QuizData, answers: Sequence[Optional[int]]) -> ScoreReport:
    correct_count = 0
    incorrect: List[IncorrectDetail] = []

    for index, question in enumerate(quiz.questions):
        answer = answers[index] if index < len(answers) else None
        if answer is not None and answer == question.correct_answer_index:
            correct_count += 1
            continue

        if answer is not None and 0 <= answer < len(question.options):
            chosen = question.options[answer]
        else:
            chosen = NO_ANSWER
        incorrect.append(
            IncorrectDetail(
                index=index,
                question_text=question.question,
                chosen_option_text=chosen,
                correct_option_text=question.options[question.correct_answer_index],
                mentor_tip=question.mentor_tip,
            )
        )

    total = len(quiz.questions)
    percentage = percentage_of(correct_count, total)
    return ScoreReport(
        correct_count=correct_count,
        total=total,
        percentage=percentage,
        tier=classify(percentage),
        incorrect_details=incorrect,
    )


def build_report_text(
    topic: str, difficulty: Difficulty, report: ScoreReport, timestamp: datetime
) -> str:
    headline, message = TIER_HEADLINES[report.tier]
    lines = [
        "SIMULADO PERFORMANCE REPORT",
        "=" * 40,
        f"Topic: {topic.strip()}",
        f"Difficulty: {Difficulty(difficulty).value}",
        f"Date: {timestamp.strftime(DATE_FORMAT)}",
        f"Score: {report.correct_count}/{report.total} ({report.percentage}%)",
        f"Result: {headline}",
        message,
        "",
        "ERROR ANALYSIS",
        "-" * 40,
    ]
    if not report.incorrect_details:
        lines.append("All questions answered correctly.")
    for detail in report.incorrect_details:
        lines.extend(
            [
                f"#{detail.index + 1} {detail.question_text}",
                f"  Your answer: {detail.chosen_option_text}",
                f"  Correct answer: {detail.correct_option_text}",
                f"  Mentor tip: {detail.mentor_tip}",
                "",
            ]
        )
    return "\n".join(lines).rstrip() + "\n"


def report_filename(topic: str, timestamp: datetime) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", topic.strip().lower()).strip("-")[:40]
    slug = slug.strip("-") or "quiz"
    return f"simulado-{slug}-{timestamp.strftime('%Y%m%d-%H%M%S')}.txt"


# --- History ---
def truncate_subject(topic: str) -> str:
    topic = " ".join(topic.split())
    if len(topic) > SUBJECT_MAX_CHARS:
        return topic[:SUBJECT_MAX_CHARS] + "..."
    return topic


def make_history_item(
    topic: str, difficulty: Difficulty, report: ScoreReport, timestamp: datetime
) -> HistoryItem:
    millis = int(timestamp.timestamp() * 1000)
    return HistoryItem(
        id=f"{millis}-{uuid.uuid4().hex[:8]}",
        subject=truncate_subject(topic),
        date=timestamp.strftime(DATE_FORMAT),
        correct=report.correct_count,
        total=report.total,
        difficulty=difficulty,
    )


def append_history(
    existing: Sequence[HistoryItem], item: HistoryItem, limit: Optional[int] = None
) -> List[HistoryItem]:
    """Newest first; the oldest entries beyond the limit are dropped."""
    limit = settings.HISTORY_LIMIT if limit is None else limit
    return [item, *existing][:limit]
