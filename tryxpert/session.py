"""
Tryout session: answer tracking, countdown, draft autosave/resume and submission.
Single-threaded; the timer driver in tryxpert.timers calls tick() and save_draft().
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from tryxpert.draft_store import DraftStore
from tryxpert.errors import PersistenceError
from tryxpert.models import Question, Result, Tryout, UserAnswer
from tryxpert.scorer import is_answered, round_half_up, score
from tryxpert.status import utc_now

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    EXPIRED = "expired"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class TryoutSession:
    """Runtime state of one learner taking one tryout."""

    def __init__(
        self,
        tryout: Tryout,
        questions: List[Question],
        drafts: DraftStore,
        clock: Callable[[], datetime] = utc_now,
        submitter: Optional[Callable[[Dict], None]] = None,
        user_id: str = "current_user_id",
    ):
        """
        Args:
            tryout: Validated tryout record
            questions: Questions in display order
            drafts: Local draft/result persistence
            clock: Returns the current aware datetime; injected for tests
            submitter: Optional backend call receiving the submission payload
            user_id: Identity placeholder sent with the submission
        """
        self.tryout = tryout
        self.questions = questions
        self.drafts = drafts
        self.clock = clock
        self.submitter = submitter
        self.user_id = user_id

        self.state = SessionState.INITIALIZING
        self.answers: List[UserAnswer] = []
        self.start_time: Optional[datetime] = None
        self.remaining_seconds: Optional[int] = None
        self.current_index = 0
        self.resumed = False
        self.result: Optional[Result] = None
        self.last_error: Optional[str] = None
        self._submitting = False
        # set once the remote submitter accepted this result
        self._accepted: Optional[Result] = None

    # ============= Lifecycle =============

    def start(self) -> "TryoutSession":
        """Restore a stored draft or begin fresh, then go ACTIVE (or straight to EXPIRED)."""
        if self.state is not SessionState.INITIALIZING:
            return self
        now = self.clock()
        draft = self.drafts.load_draft(self.tryout.id)

        if draft is not None:
            stored = {a.question_id: a for a in draft.answers}
            missing = [q.id for q in self.questions if q.id not in stored]
            if missing:
                logger.info(f"Draft for tryout {self.tryout.id} has no answers for questions {missing}")
            self.answers = [stored.get(q.id) or UserAnswer.blank(q.id) for q in self.questions]
            self.start_time = draft.start_time
            self.resumed = True
            logger.info(f"Resuming tryout {self.tryout.id} started at {self.start_time.isoformat()}")
        else:
            self.answers = [UserAnswer.blank(q.id) for q in self.questions]
            self.start_time = now

        duration = self.tryout.duration_seconds
        if duration is not None:
            elapsed = int((now - self.start_time).total_seconds())
            self.remaining_seconds = max(0, duration - elapsed)

        self.state = SessionState.ACTIVE
        if self.remaining_seconds == 0:
            self._expire()
        return self

    def tick(self, seconds: int = 1) -> None:
        """Advance the countdown. Unlimited sessions never expire."""
        if self.state is not SessionState.ACTIVE or self.remaining_seconds is None:
            return
        self.remaining_seconds = max(0, self.remaining_seconds - seconds)
        if self.remaining_seconds == 0:
            self._expire()

    def _expire(self) -> None:
        logger.info(f"Time is up for tryout {self.tryout.id}, auto-submitting")
        self.state = SessionState.EXPIRED
        try:
            self.submit()
        except PersistenceError as e:
            # kept EXPIRED with answers intact; the page offers a retry
            logger.error(f"Auto-submit failed for tryout {self.tryout.id}: {e}")

    def save_draft(self) -> None:
        if self.state is not SessionState.ACTIVE or not self.answers:
            return
        self.drafts.save_draft(self.tryout.id, self.answers, self.start_time)

    @property
    def is_finished(self) -> bool:
        return self.state is SessionState.SUBMITTED

    # ============= Navigation =============

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def current_answer(self) -> Optional[UserAnswer]:
        q = self.current_question
        if q is None:
            return None
        return self.answer_for(q.id)

    def answer_for(self, question_id: int) -> Optional[UserAnswer]:
        return next((a for a in self.answers if a.question_id == question_id), None)

    def go_to_index(self, index: int) -> None:
        if 0 <= index < len(self.questions):
            self.current_index = index

    def go_to_next(self) -> None:
        self.go_to_index(self.current_index + 1)

    def go_to_previous(self) -> None:
        self.go_to_index(self.current_index - 1)

    # ============= Answers =============

    def _update_current(self, **changes) -> None:
        if self.state is not SessionState.ACTIVE or self._accepted is not None:
            return
        q = self.current_question
        if q is None:
            return
        for i, a in enumerate(self.answers):
            if a.question_id == q.id:
                self.answers[i] = a.model_copy(update=changes)
                return

    def set_selected_option(self, value: Optional[str]) -> None:
        self._update_current(selected_option=value)

    def set_essay_text(self, value: Optional[str]) -> None:
        self._update_current(essay_answer=value)

    def toggle_flag(self) -> None:
        answer = self.current_answer
        if answer is not None:
            self._update_current(flagged=not answer.flagged)

    def is_answered(self, question: Question) -> bool:
        return is_answered(question, self.answer_for(question.id))

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if self.is_answered(q))

    @property
    def progress(self) -> int:
        if not self.questions:
            return 0
        return round_half_up(100 * self.answered_count / len(self.questions))

    # ============= Submission =============

    def submission_payload(self, end_time: datetime) -> Dict:
        return {
            "tryout_id": self.tryout.id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "time_taken_seconds": int((end_time - self.start_time).total_seconds()),
            "answers": [
                {
                    "question_id": a.question_id,
                    "selected_option": a.selected_option,
                    "essay_answer": a.essay_answer,
                    "flagged": a.flagged,
                }
                for a in self.answers
            ],
        }

    def _build_result(self) -> Result:
        end_time = self.clock()
        summary = score(self.questions, self.answers)
        return Result(
            tryout_id=self.tryout.id,
            answers=summary.per_question,
            earned_points=summary.earned_points,
            total_points=summary.total_points,
            percentage=summary.percentage,
            correct_count=summary.correct_count,
            incorrect_count=summary.incorrect_count,
            unanswered_count=summary.unanswered_count,
            start_time=self.start_time,
            end_time=end_time,
            time_taken_seconds=int((end_time - self.start_time).total_seconds()),
        )

    def submit(self) -> Optional[Result]:
        """
        Score and persist the session. Explicit submit and time-up share this path.

        The remote submitter runs at most once per session. When the local save
        fails after the backend accepted the payload, a retry saves that same
        result again without re-sending or rescoring it.

        Returns:
            The Result, the existing Result if already submitted, or None while a
            submission is in flight.

        Raises:
            PersistenceError: saving failed; answers are kept and submit can be retried.
        """
        if self.state is SessionState.SUBMITTED:
            return self.result
        if self._submitting:
            logger.warning(f"Submit for tryout {self.tryout.id} ignored, already in flight")
            return None
        if self.state not in (SessionState.ACTIVE, SessionState.EXPIRED):
            return None

        self._submitting = True
        previous = self.state
        self.state = SessionState.SUBMITTING
        try:
            result = self._accepted
            if result is None:
                result = self._build_result()
                if self.submitter is not None:
                    try:
                        self.submitter(self.submission_payload(result.end_time))
                    except PersistenceError:
                        raise
                    except Exception as e:
                        raise PersistenceError(f"Could not submit answers: {e}") from e
                    self._accepted = result
            # draft is cleared only after the backend accepted the submission
            self.drafts.save_result(result)
        except PersistenceError as e:
            self.state = previous
            self.last_error = str(e)
            logger.error(f"Submission failed for tryout {self.tryout.id}: {e}")
            raise
        finally:
            self._submitting = False

        self.result = result
        self.last_error = None
        self.state = SessionState.SUBMITTED
        logger.info(
            f"Tryout {self.tryout.id} submitted: {result.earned_points}/{result.total_points} "
            f"({result.percentage}%) in {result.time_taken_seconds}s"
        )
        return result
