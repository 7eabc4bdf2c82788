"""Shared fixtures: a controllable clock, sample tryouts/questions and an in-memory Supabase stand-in."""
import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tryxpert.draft_store import DraftStore, MemoryStore
from tryxpert.models import Question, Tryout

T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return Clock()


def make_tryout(**overrides) -> Tryout:
    row = {
        "id": 7,
        "title": "Math Tryout",
        "subject": "Mathematics",
        "start_date": (T0 - timedelta(hours=1)).isoformat(),
        "end_date": (T0 + timedelta(days=1)).isoformat(),
        "duration": 60,
        "difficulty": "Medium",
        "participants": 0,
    }
    row.update(overrides)
    return Tryout.model_validate(row)


def make_question(qid: int, order: int, qtype="multiple_choice", correct="A", points=1, **extra) -> Question:
    row = {
        "id": qid,
        "tryout_id": 7,
        "question_text": f"Question number {qid}?",
        "question_type": qtype,
        "options": ["A", "B", "C", "X"] if qtype == "multiple_choice" else None,
        "correct_answer": correct,
        "points": points,
        "order_number": order,
    }
    row.update(extra)
    return Question.model_validate(row)


@pytest.fixture
def tryout():
    return make_tryout()


@pytest.fixture
def mc_questions():
    return [make_question(1, 1, correct="A"), make_question(2, 2, correct="B"), make_question(3, 3, correct="C")]


@pytest.fixture
def drafts():
    return DraftStore(MemoryStore())


# --- Supabase stand-in ---

class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None
        self.count = None

    def select(self, *columns, count=None):
        self.op = "select"
        self.count = count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op, list(self.filters)))
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in items:
                self.db.next_id += 1
                row = {"id": self.db.next_id, **copy.deepcopy(item)}
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return SimpleNamespace(data=inserted, count=None)
        if self.op == "update":
            changed = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    changed.append(copy.deepcopy(row))
            return SimpleNamespace(data=changed, count=None)
        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=removed, count=None)
        found = [copy.deepcopy(r) for r in rows if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            found.sort(key=lambda r: r.get(column), reverse=desc)
        total = len(found)
        if self.limit_n is not None:
            found = found[: self.limit_n]
        return SimpleNamespace(data=found, count=total if self.count else None)


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.failing = set()
        self.calls = []
        self.next_id = 100

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()
