#!/usr/bin/env python3
"""
Integration test: Database + Session + Scorer workflow.
Demonstrates:
1. Creating a tryout and its questions
2. Taking the tryout with a draft saved mid-way
3. Resuming, submitting and reading the result back
"""
import logging
from datetime import timedelta

from conftest import T0, Clock, FakeSupabase
from tryxpert.countdown import format_clock, format_time_taken
from tryxpert.database import DatabaseClient
from tryxpert.draft_store import DraftStore, MemoryStore
from tryxpert.models import QuestionForm, TryoutForm
from tryxpert.scorer import recommendations, summarize_stored
from tryxpert.session import SessionState, TryoutSession
from tryxpert.status import ensure_can_start
from tryxpert.timers import SessionTimers

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def test_tryout_workflow():
    """Full end-to-end run of tryout creation, answering, resuming and scoring."""

    logger.info("=" * 70)
    logger.info("TryXpert - Integration Test")
    logger.info("=" * 70)

    supabase = FakeSupabase()
    db = DatabaseClient(supabase)
    drafts = DraftStore(MemoryStore())
    clock = Clock(T0)

    tryout_id = db.create_tryout(TryoutForm(
        title="General Science",
        subject="Science",
        start_date=T0 - timedelta(hours=1),
        end_date=T0 + timedelta(hours=5),
        duration=30,
        difficulty="Easy",
    ))
    tryout = db.get_tryout(tryout_id)
    logger.info(f"\n✓ Created tryout {tryout_id}: {tryout.title}")

    for text, qtype, options, answer in [
        ("What is the chemical symbol for water?", "multiple_choice", ["H2O", "CO2", "O2"], "H2O"),
        ("The Earth orbits the Sun.", "true_false", [], "true"),
        ("Explain how vaccines work.", "essay", [], "Training the immune system"),
    ]:
        db.add_question(tryout, QuestionForm(question_text=text, question_type=qtype, options=options, correct_answer=answer, points=2))
    tryout = db.get_tryout_with_questions(tryout_id)
    logger.info(f"✓ Added {tryout.total_questions} questions")
    assert [q.order_number for q in tryout.questions] == [1, 2, 3]

    ensure_can_start(tryout, clock())

    logger.info("\n--- First sitting ---")
    session = TryoutSession(tryout, tryout.questions, drafts, clock=clock, submitter=db.submit_tryout).start()
    timers = SessionTimers(session, clock=clock)
    timers.poll()
    session.set_selected_option("h2o")
    session.go_to_next()
    session.toggle_flag()
    clock.advance(seconds=10)
    timers.poll()
    logger.info(f"  Remaining: {format_clock(session.remaining_seconds)} | Progress: {session.progress}%")
    assert drafts.load_draft(tryout_id) is not None

    logger.info("\n--- Resumed sitting ---")
    clock.advance(minutes=5)
    session = TryoutSession(tryout, tryout.questions, drafts, clock=clock, submitter=db.submit_tryout).start()
    assert session.resumed
    assert session.remaining_seconds == 1800 - 310
    session.go_to_index(1)
    session.set_selected_option("False")
    session.go_to_next()
    session.set_essay_text("They train the immune system to recognise a pathogen.")
    result = session.submit()

    logger.info("\n--- Test Results ---")
    logger.info(f"  Score: {result.earned_points}/{result.total_points} ({result.percentage}%)")
    logger.info(f"  Category: {result.category}")
    logger.info(f"  Time taken: {format_time_taken(result.time_taken_seconds)}")
    for line in recommendations(result.percentage):
        logger.info(f"  - {line}")

    assert session.state is SessionState.SUBMITTED
    assert (result.correct_count, result.incorrect_count, result.unanswered_count) == (1, 1, 0)
    assert result.earned_points == 2
    assert result.total_points == 6
    assert result.percentage == 33
    assert result.time_taken_seconds == 310
    assert [a.flagged for a in result.answers] == [False, True, False]

    submission = supabase.tables["submissions"][0]
    assert submission["tryout_id"] == tryout_id
    assert len(submission["answers"]) == 3

    stored = drafts.load_result(tryout_id)
    assert drafts.load_draft(tryout_id) is None
    assert summarize_stored(tryout.questions, stored.answers).percentage == result.percentage

    logger.info("\n--- Answer key edited after submission ---")
    true_false = tryout.questions[1]
    db.update_question(tryout, true_false.id, QuestionForm(
        question_text=true_false.question_text, question_type="true_false", correct_answer="false", points=2,
    ))
    tryout = db.get_tryout_with_questions(tryout_id)
    assert tryout.questions[1].correct_answer == "false"
    after_edit = summarize_stored(tryout.questions, stored.answers)
    logger.info(f"  Stored score: {after_edit.earned_points}/{after_edit.total_points} ({after_edit.percentage}%)")
    assert (after_edit.correct_count, after_edit.incorrect_count) == (1, 1)
    assert after_edit.percentage == result.percentage

    logger.info("\n" + "=" * 70)
    logger.info("✓ Integration test completed successfully")
    logger.info("=" * 70)


if __name__ == "__main__":
    test_tryout_workflow()
