"""Question ordering and the edit gate. Pure; DatabaseClient applies the returned changes."""
from typing import Dict, List

from tryxpert.errors import ReadOnlyTryoutError
from tryxpert.models import Question, Tryout

UP = "up"
DOWN = "down"


def ensure_editable(tryout: Tryout) -> None:
    if not tryout.is_editable:
        raise ReadOnlyTryoutError(
            "This tryout already has participants and cannot be modified.",
            {"participants": f"{tryout.participants} participant(s)"},
        )


def next_order_number(questions: List[Question]) -> int:
    return len(questions) + 1


def resequence(questions: List[Question]) -> Dict[int, int]:
    """Order numbers that must change so the questions read 1..N in their current order."""
    ordered = sorted(questions, key=lambda q: q.order_number)
    return {q.id: i for i, q in enumerate(ordered, start=1) if q.order_number != i}


def move_question(questions: List[Question], question_id: int, direction: str) -> Dict[int, int]:
    """Swap order numbers with the neighbour. Moving past either end changes nothing."""
    if direction not in (UP, DOWN):
        raise ValueError(f"direction must be '{UP}' or '{DOWN}'")
    ordered = sorted(questions, key=lambda q: q.order_number)
    index = next((i for i, q in enumerate(ordered) if q.id == question_id), None)
    if index is None:
        return {}
    other = index - 1 if direction == UP else index + 1
    if other < 0 or other >= len(ordered):
        return {}
    a, b = ordered[index], ordered[other]
    return {a.id: b.order_number, b.id: a.order_number}
