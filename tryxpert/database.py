"""
Database operations for TryXpert.
Handles Supabase CRUD for tryouts, questions, and submissions.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List

from pydantic import ValidationError
from supabase import Client

from tryxpert.editor import ensure_editable, move_question, next_order_number, resequence
from tryxpert.errors import DataIntegrityError, PersistenceError
from tryxpert.models import Question, QuestionForm, Tryout, TryoutForm

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatabaseClient:
    """Wrapper around Supabase client with TryXpert-specific operations."""

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Error {action}: {e}") from e

    @staticmethod
    def _parse(model, row: Dict, what: str):
        try:
            return model.model_validate(row)
        except ValidationError as e:
            logger.error(f"Malformed {what} row {row.get('id')}: {e}")
            raise DataIntegrityError(f"Malformed {what} record {row.get('id')}") from e

    # ============= Tryouts =============

    def count_questions(self, tryout_id: int) -> int:
        response = self._execute(
            self.client.table("questions").select("id", count="exact").eq("tryout_id", tryout_id).limit(0),
            f"counting questions for tryout {tryout_id}",
        )
        return response.count or 0

    def fetch_tryouts(self) -> List[Tryout]:
        """All tryouts ordered by start date, each with its question count."""
        response = self._execute(
            self.client.table("tryouts").select("*").order("start_date", desc=False),
            "fetching tryouts",
        )
        tryouts = []
        for row in response.data or []:
            tryout = self._parse(Tryout, row, "tryout")
            try:
                tryout.total_questions = self.count_questions(tryout.id)
            except PersistenceError:
                tryout.total_questions = 0
            tryouts.append(tryout)
        return tryouts

    def get_tryout(self, tryout_id: int) -> Tryout:
        response = self._execute(
            self.client.table("tryouts").select("*").eq("id", tryout_id).limit(1),
            f"fetching tryout {tryout_id}",
        )
        if not response.data:
            raise DataIntegrityError(f"Tryout {tryout_id} not found")
        return self._parse(Tryout, response.data[0], "tryout")

    def get_tryout_with_questions(self, tryout_id: int) -> Tryout:
        tryout = self.get_tryout(tryout_id)
        tryout.questions = self.get_questions(tryout_id)
        tryout.total_questions = len(tryout.questions)
        return tryout

    def create_tryout(self, form: TryoutForm) -> int:
        """
        Insert a new tryout with zero participants.

        Returns:
            The new tryout id
        """
        row = form.to_row()
        row.update({"participants": 0, "created_at": _now_iso(), "updated_at": _now_iso()})
        response = self._execute(self.client.table("tryouts").insert(row), "adding tryout")
        if not response.data:
            raise PersistenceError("Tryout insert returned no row")
        tryout_id = response.data[0]["id"]
        logger.info(f"Created tryout {tryout_id}: {form.title}")
        return tryout_id

    def update_tryout(self, tryout: Tryout, form: TryoutForm) -> None:
        ensure_editable(tryout)
        row = form.to_row()
        row["updated_at"] = _now_iso()
        self._execute(self.client.table("tryouts").update(row).eq("id", tryout.id), f"updating tryout {tryout.id}")
        logger.info(f"Updated tryout {tryout.id}")

    def delete_tryout(self, tryout_id: int) -> None:
        self._execute(self.client.table("tryouts").delete().eq("id", tryout_id), f"deleting tryout {tryout_id}")
        logger.info(f"Deleted tryout {tryout_id}")

    # ============= Questions =============

    def get_questions(self, tryout_id: int) -> List[Question]:
        response = self._execute(
            self.client.table("questions").select("*").eq("tryout_id", tryout_id).order("order_number", desc=False),
            f"fetching questions for tryout {tryout_id}",
        )
        return [self._parse(Question, row, "question") for row in response.data or []]

    def add_question(self, tryout: Tryout, form: QuestionForm) -> Question:
        ensure_editable(tryout)
        row = form.to_row()
        row["tryout_id"] = tryout.id
        row["order_number"] = next_order_number(self.get_questions(tryout.id))
        response = self._execute(self.client.table("questions").insert(row), "adding question")
        if not response.data:
            raise PersistenceError("Question insert returned no row")
        return self._parse(Question, response.data[0], "question")

    def update_question(self, tryout: Tryout, question_id: int, form: QuestionForm) -> None:
        ensure_editable(tryout)
        self._execute(
            self.client.table("questions").update(form.to_row()).eq("id", question_id),
            f"updating question {question_id}",
        )

    def delete_question(self, tryout: Tryout, question_id: int) -> None:
        """Delete a question and close the gap in the remaining order numbers."""
        ensure_editable(tryout)
        self._execute(self.client.table("questions").delete().eq("id", question_id), f"deleting question {question_id}")
        remaining = self.get_questions(tryout.id)
        self._apply_order(resequence(remaining))

    def move_question(self, tryout: Tryout, question_id: int, direction: str) -> None:
        ensure_editable(tryout)
        self._apply_order(move_question(self.get_questions(tryout.id), question_id, direction))

    def _apply_order(self, changes: Dict[int, int]) -> None:
        for question_id, order_number in changes.items():
            self._execute(
                self.client.table("questions").update({"order_number": order_number}).eq("id", question_id),
                f"updating order of question {question_id}",
            )
        if changes:
            logger.debug(f"Reordered {len(changes)} questions")

    # ============= Submissions =============

    def submit_tryout(self, payload: Dict) -> None:
        self._execute(self.client.table("submissions").insert(payload), f"submitting tryout {payload.get('tryout_id')}")
        logger.info(f"Submission stored for tryout {payload.get('tryout_id')}")
