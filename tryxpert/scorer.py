"""Pure scoring: per-question correctness, aggregate points and percentage. No I/O."""
import math
from typing import Callable, List, NamedTuple, Optional

from tryxpert.models import Question, QuestionResult, QuestionType, UserAnswer

CATEGORY_THRESHOLDS = (
    (90, "Excellent"),
    (75, "Good"),
    (60, "Fair"),
    (40, "Poor"),
)
LOWEST_CATEGORY = "Needs significant improvement"

RECOMMENDATIONS = (
    (85, [
        "Keep up the good results! Try tryouts with a higher difficulty.",
        "Focus on the questions you still got wrong.",
        "Share your study techniques with friends to help them.",
    ]),
    (70, [
        "Good result. Improve further by deepening your grasp of the concepts.",
        "Practise with a wider variety of questions.",
        "Note down and revisit the questions you got wrong.",
    ]),
    (50, [
        "Strengthen the topics you are still weak in.",
        "Set a more structured study schedule.",
        "Try a different study method such as mind mapping or group discussion.",
    ]),
)
BASE_RECOMMENDATIONS = [
    "Focus on the basic concepts before attempting complex questions.",
    "Ask a tutor or teacher to explain the difficult material.",
    "Use easier tryouts to build confidence.",
]


class ScoreSummary(NamedTuple):
    per_question: List[QuestionResult]
    earned_points: int
    total_points: int
    percentage: int
    correct_count: int
    incorrect_count: int
    unanswered_count: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_answered(question: Question, answer: Optional[UserAnswer]) -> bool:
    if answer is None:
        return False
    if question.question_type is QuestionType.ESSAY:
        return bool(answer.essay_answer) and answer.essay_answer.strip() != ""
    return bool(answer.selected_option)


def _tally(questions: List[Question], answers, judge: Callable) -> ScoreSummary:
    by_id = {a.question_id: a for a in answers}
    per_question = []
    total = earned = correct = incorrect = unanswered = 0

    for q in questions:
        answer = by_id.get(q.id)
        total += q.points
        is_correct: Optional[bool]
        if not is_answered(q, answer):
            unanswered += 1
            is_correct = False
        elif q.question_type is QuestionType.ESSAY:
            # needs manual grading
            is_correct = None
        elif judge(q, answer):
            earned += q.points
            correct += 1
            is_correct = True
        else:
            incorrect += 1
            is_correct = False

        answer = answer or UserAnswer.blank(q.id)
        per_question.append(QuestionResult(
            question_id=q.id,
            selected_option=answer.selected_option,
            essay_answer=answer.essay_answer,
            flagged=answer.flagged,
            is_correct=is_correct,
        ))

    percentage = round_half_up(100 * earned / total) if total > 0 else 0
    return ScoreSummary(per_question, earned, total, percentage, correct, incorrect, unanswered)


def score(questions: List[Question], answers: List[UserAnswer]) -> ScoreSummary:
    return _tally(questions, answers, lambda q, a: a.selected_option.lower() == q.correct_answer.lower())


def score_category(percentage: float) -> str:
    for threshold, label in CATEGORY_THRESHOLDS:
        if percentage >= threshold:
            return label
    return LOWEST_CATEGORY


def recommendations(percentage: float) -> List[str]:
    for threshold, tips in RECOMMENDATIONS:
        if percentage >= threshold:
            return list(tips)
    return list(BASE_RECOMMENDATIONS)


def summarize_stored(questions: List[Question], stored: List[QuestionResult]) -> ScoreSummary:
    """
    Summary of a submitted result for display.

    Correctness is the verdict recorded at submission, so later answer-key edits
    do not change a past result. Points come from the current questions; a
    question added after submission counts as unanswered.
    """
    return _tally(questions, stored, lambda q, r: r.is_correct is True)
