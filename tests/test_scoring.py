from datetime import datetime

import pytest

from conftest import make_quiz
from simulado.models import Difficulty, HistoryItem, Tier
from simulado.scoring import (
    NO_ANSWER,
    append_history,
    build_report_text,
    classify,
    make_history_item,
    percentage_of,
    report_filename,
    score,
    truncate_subject,
)

WHEN = datetime(2026, 3, 14, 9, 26, 53)


def history_item(n: int) -> HistoryItem:
    return HistoryItem(
        id=str(n),
        subject=f"Topic {n}",
        date="01/01/2026 10:00",
        correct=n % 5,
        total=5,
        difficulty=Difficulty.MEDIUM,
    )


@pytest.mark.parametrize(
    "correct,total,percentage,tier",
    [
        (35, 50, 70, Tier.PASS),
        (24, 50, 48, Tier.FAIL),
        (25, 50, 50, Tier.BORDERLINE),
        (50, 50, 100, Tier.PASS),
        (0, 50, 0, Tier.FAIL),
        (1, 8, 13, Tier.FAIL),
    ],
)
def test_percentage_and_tier_boundaries(correct, total, percentage, tier):
    assert percentage_of(correct, total) == percentage
    assert classify(percentage) is tier


def test_tier_boundaries_from_quiz():
    quiz = make_quiz([0] * 50)
    answers = [0] * 35 + [1] * 15
    report = score(quiz, answers)
    assert (report.correct_count, report.total, report.percentage) == (35, 50, 70)
    assert report.tier is Tier.PASS
    assert len(report.incorrect_details) == 15


def test_absent_answer_listed_as_none():
    quiz = make_quiz([0, 1, 1, 3, 2])
    answers = [0, 1, None, 3, 2]
    report = score(quiz, answers)

    assert report.correct_count == 4
    assert len(report.incorrect_details) == 1
    detail = report.incorrect_details[0]
    assert detail.index == 2
    assert detail.chosen_option_text == NO_ANSWER == "none"
    assert detail.correct_option_text == "Q3 option B"
    assert detail.mentor_tip == "Tip 3"


def test_short_answer_list_counts_missing_as_wrong(quiz):
    report = score(quiz, [0, 1])
    assert report.correct_count == 2
    assert [d.index for d in report.incorrect_details] == [2, 3, 4]
    assert all(d.chosen_option_text == "none" for d in report.incorrect_details)


def test_incorrect_details_keep_question_order(quiz):
    report = score(quiz, [3, 1, 0, 3, 0])
    assert [d.index for d in report.incorrect_details] == [0, 2, 4]
    assert report.incorrect_details[0].chosen_option_text == "Q1 option D"
    assert report.incorrect_details[0].correct_option_text == "Q1 option A"


def test_extra_answers_are_ignored(quiz):
    report = score(quiz, [0, 1, 2, 3, 1, 0, 0])
    assert report.correct_count == report.total == 5
    assert report.incorrect_details == []


def test_score_is_bounded_and_idempotent(quiz):
    for answers in ([], [None] * 5, [0, 1, 2, 3, 1], [9, 9, 9, 9, 9]):
        first = score(quiz, answers)
        assert 0 <= first.correct_count <= first.total
        assert score(quiz, answers) == first


def test_empty_quiz_scores_zero():
    report = score(make_quiz([]), [])
    assert (report.correct_count, report.total, report.percentage) == (0, 0, 0)
    assert report.tier is Tier.FAIL


def test_report_text_contains_summary_and_breakdown(quiz):
    report = score(quiz, [0, 1, None, 0, 1])
    text = build_report_text("Cell biology", Difficulty.HARD, report, WHEN)

    assert "Topic: Cell biology" in text
    assert "Difficulty: hard" in text
    assert "Score: 3/5 (60%)" in text
    assert "BORDERLINE" in text
    assert "14/03/2026 09:26" in text
    assert "#3 Question 3?" in text
    assert "Your answer: none" in text
    assert "Correct answer: Q4 option D" in text
    assert "Mentor tip: Tip 4" in text
    assert text.index("#3") < text.index("#4")


def test_report_text_for_perfect_score(quiz):
    report = score(quiz, [0, 1, 2, 3, 1])
    text = build_report_text("Topic", Difficulty.EASY, report, WHEN)
    assert "All questions answered correctly." in text
    assert "PASSED" in text


def test_report_filename_is_slugged_and_timestamped():
    name = report_filename("  Revolução Francesa: causas & efeitos ", WHEN)
    assert name.startswith("simulado-revolu")
    assert name.endswith("-20260314-092653.txt")
    assert " " not in name and "&" not in name
    assert report_filename("???", WHEN) == "simulado-quiz-20260314-092653.txt"


def test_truncate_subject():
    assert truncate_subject("Short topic") == "Short topic"
    long_topic = "A" * 50
    assert truncate_subject(long_topic) == "A" * 35 + "..."


def test_make_history_item(quiz):
    report = score(quiz, [0, 1, 2, 0, 0])
    item = make_history_item("x" * 40, Difficulty.EASY, report, WHEN)
    assert item.subject == "x" * 35 + "..."
    assert item.date == "14/03/2026 09:26"
    assert (item.correct, item.total) == (3, 5)
    assert item.difficulty is Difficulty.EASY
    assert item.id.startswith(str(int(WHEN.timestamp() * 1000)))
    assert make_history_item("x", Difficulty.EASY, report, WHEN).id != item.id


def test_append_history_caps_at_limit():
    existing = [history_item(n) for n in range(100)]
    new = history_item(999)
    result = append_history(existing, new)

    assert len(result) == 100
    assert result[0] == new
    assert result[1:] == existing[:99]
    assert existing[-1] not in result
    assert len(existing) == 100


def test_append_history_below_limit():
    result = append_history([history_item(1)], history_item(2), limit=3)
    assert [i.id for i in result] == ["2", "1"]
