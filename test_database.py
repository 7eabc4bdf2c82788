"""DatabaseClient against an in-memory Supabase stand-in."""
from datetime import timedelta

import pytest

from conftest import T0, FakeSupabase
from tryxpert.database import DatabaseClient
from tryxpert.editor import DOWN, UP
from tryxpert.errors import DataIntegrityError, PersistenceError, ReadOnlyTryoutError
from tryxpert.models import QuestionForm, TryoutForm


def tryout_row(tid, participants=0, **extra):
    row = {
        "id": tid,
        "title": f"Tryout {tid}",
        "subject": "Biology",
        "start_date": (T0 + timedelta(days=tid)).isoformat(),
        "end_date": (T0 + timedelta(days=tid + 1)).isoformat(),
        "duration": 30,
        "difficulty": "Easy",
        "participants": participants,
    }
    row.update(extra)
    return row


def question_row(qid, tid, order):
    return {
        "id": qid,
        "tryout_id": tid,
        "question_text": f"Question {qid} text",
        "question_type": "multiple_choice",
        "options": '["A", "B"]',
        "correct_answer": "A",
        "points": 1,
        "order_number": order,
    }


def question_form(text="Which cell organelle makes ATP?"):
    return QuestionForm(
        question_text=text,
        question_type="multiple_choice",
        options=["Mitochondria", "Ribosome"],
        correct_answer="Mitochondria",
    )


@pytest.fixture
def supabase():
    return FakeSupabase({
        "tryouts": [tryout_row(2), tryout_row(1), tryout_row(3, participants=4)],
        "questions": [question_row(11, 1, 1), question_row(12, 1, 2), question_row(13, 1, 3)],
    })


@pytest.fixture
def db(supabase):
    return DatabaseClient(supabase)


def orders(supabase, tid=1):
    rows = sorted((r for r in supabase.tables["questions"] if r["tryout_id"] == tid), key=lambda r: r["order_number"])
    return [(r["id"], r["order_number"]) for r in rows]


def test_fetch_tryouts_sorted_with_counts(db):
    tryouts = db.fetch_tryouts()
    assert [t.id for t in tryouts] == [1, 2, 3]
    assert [t.total_questions for t in tryouts] == [3, 0, 0]
    assert tryouts[0].questions == []


def test_get_tryout_with_questions(db):
    tryout = db.get_tryout_with_questions(1)
    assert [q.id for q in tryout.questions] == [11, 12, 13]
    assert tryout.total_questions == 3
    assert tryout.questions[0].options == ["A", "B"]


def test_missing_tryout_is_integrity_error(db):
    with pytest.raises(DataIntegrityError, match="not found"):
        db.get_tryout(404)


def test_malformed_row_is_integrity_error(supabase, db):
    supabase.tables["tryouts"].append(tryout_row(9, duration=0))
    with pytest.raises(DataIntegrityError):
        db.get_tryout(9)


def test_backend_failure_is_persistence_error(supabase, db):
    supabase.failing.add("tryouts")
    with pytest.raises(PersistenceError, match="unavailable"):
        db.fetch_tryouts()


def test_count_failure_falls_back_to_zero(supabase, db):
    supabase.tables["questions"] = []
    supabase.failing.add("questions")
    assert [t.total_questions for t in db.fetch_tryouts()] == [0, 0, 0]


def test_create_tryout_starts_without_participants(supabase, db):
    form = TryoutForm(
        title="Chemistry",
        subject="Chemistry",
        start_date=T0,
        end_date=T0 + timedelta(days=2),
        difficulty="Medium",
    )
    new_id = db.create_tryout(form)
    created = db.get_tryout(new_id)
    assert created.participants == 0
    assert created.is_unlimited


def test_add_question_appends_at_end(supabase, db):
    tryout = db.get_tryout(1)
    question = db.add_question(tryout, question_form())
    assert question.order_number == 4
    assert question.tryout_id == 1


def test_delete_question_closes_gap(supabase, db):
    db.delete_question(db.get_tryout(1), 11)
    assert orders(supabase) == [(12, 1), (13, 2)]


def test_move_question(supabase, db):
    tryout = db.get_tryout(1)
    db.move_question(tryout, 13, UP)
    assert orders(supabase) == [(11, 1), (13, 2), (12, 3)]

    calls = len(supabase.calls)
    db.move_question(tryout, 12, DOWN)
    assert orders(supabase) == [(11, 1), (13, 2), (12, 3)]
    # only the read, no updates
    assert len(supabase.calls) == calls + 1


def test_tryout_with_participants_is_read_only(supabase, db):
    locked = db.get_tryout(3)
    before = len(supabase.calls)
    with pytest.raises(ReadOnlyTryoutError):
        db.add_question(locked, question_form())
    with pytest.raises(ReadOnlyTryoutError):
        db.delete_question(locked, 11)
    with pytest.raises(ReadOnlyTryoutError):
        db.move_question(locked, 11, DOWN)
    with pytest.raises(ReadOnlyTryoutError):
        db.update_question(locked, 11, question_form())
    assert len(supabase.calls) == before


def test_update_question(supabase, db):
    db.update_question(db.get_tryout(1), 12, question_form("Where is DNA stored?"))
    row = next(r for r in supabase.tables["questions"] if r["id"] == 12)
    assert row["question_text"] == "Where is DNA stored?"
    assert row["order_number"] == 2


def test_submit_tryout(supabase, db):
    db.submit_tryout({"tryout_id": 1, "user_id": "u-1", "answers": []})
    assert supabase.tables["submissions"][0]["user_id"] == "u-1"

    supabase.failing.add("submissions")
    with pytest.raises(PersistenceError):
        db.submit_tryout({"tryout_id": 1})
