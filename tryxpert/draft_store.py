"""
Local key-value persistence for in-progress drafts and final results.
Last write wins: one writer per tryout id per store is assumed, there is no locking.
"""
import contextlib
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, NamedTuple, Optional

from pydantic import ValidationError

from tryxpert.errors import PersistenceError
from tryxpert.models import QuestionResult, Result, UserAnswer
from tryxpert.status import parse_timestamp

logger = logging.getLogger(__name__)

THEME_KEY = "theme"
THEMES = ("light", "dark")


def draft_answers_key(tryout_id) -> str:
    return f"draft_answers_{tryout_id}"


def draft_start_time_key(tryout_id) -> str:
    return f"draft_start_time_{tryout_id}"


def final_keys(tryout_id) -> dict:
    return {
        "answers": f"final_answers_{tryout_id}",
        "start_time": f"start_time_{tryout_id}",
        "end_time": f"end_time_{tryout_id}",
        "time_taken": f"time_taken_seconds_{tryout_id}",
    }


class KeyValueStore:
    """String keys to string values."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys in one JSON object on disk, rewritten atomically on every change."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Draft file %s is corrupt, starting empty", self.path)
            return {}
        except OSError as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        tmp = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".drafts-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e
        finally:
            # gone already after a successful replace
            if tmp is not None:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp)

    def get(self, key):
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class Draft(NamedTuple):
    answers: List[UserAnswer]
    start_time: datetime


class DraftStore:
    """Draft and final-result persistence for tryout sessions, keyed per tryout id."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _set(self, key: str, value: str) -> None:
        try:
            self.store.set(key, value)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Could not save {key}: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Could not delete {key}: {e}") from e

    # --- Drafts ---

    def save_draft(self, tryout_id, answers: List[UserAnswer], start_time: datetime) -> None:
        self._set(draft_answers_key(tryout_id), json.dumps([a.model_dump() for a in answers]))
        self._set(draft_start_time_key(tryout_id), start_time.isoformat())
        logger.debug("Draft saved for tryout %s (%d answers)", tryout_id, len(answers))

    def load_draft(self, tryout_id) -> Optional[Draft]:
        answers_json = self.store.get(draft_answers_key(tryout_id))
        start_raw = self.store.get(draft_start_time_key(tryout_id))
        if answers_json is None or start_raw is None:
            return None
        try:
            answers = [UserAnswer.model_validate(a) for a in json.loads(answers_json)]
            start_time = parse_timestamp(start_raw)
        except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable draft for tryout %s: %s", tryout_id, e)
            return None
        return Draft(answers, start_time)

    def clear_draft(self, tryout_id) -> None:
        self._delete(draft_answers_key(tryout_id))
        self._delete(draft_start_time_key(tryout_id))

    # --- Results ---

    def save_result(self, result: Result) -> None:
        """Write the final keys, then drop the draft."""
        keys = final_keys(result.tryout_id)
        self._set(keys["answers"], json.dumps([a.model_dump() for a in result.answers]))
        self._set(keys["start_time"], result.start_time.isoformat())
        self._set(keys["end_time"], result.end_time.isoformat())
        self._set(keys["time_taken"], str(result.time_taken_seconds))
        self.clear_draft(result.tryout_id)
        logger.info("Result saved for tryout %s", result.tryout_id)

    def load_result(self, tryout_id) -> Optional["StoredResult"]:
        keys = final_keys(tryout_id)
        answers_json = self.store.get(keys["answers"])
        if answers_json is None:
            return None
        try:
            answers = [QuestionResult.model_validate(a) for a in json.loads(answers_json)]
            start_raw = self.store.get(keys["start_time"])
            end_raw = self.store.get(keys["end_time"])
            taken_raw = self.store.get(keys["time_taken"])
            return StoredResult(
                answers=answers,
                start_time=parse_timestamp(start_raw) if start_raw else None,
                end_time=parse_timestamp(end_raw) if end_raw else None,
                time_taken_seconds=int(taken_raw) if taken_raw else None,
            )
        except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
            logger.error("Unreadable result for tryout %s: %s", tryout_id, e)
            return None


class StoredResult(NamedTuple):
    answers: List[QuestionResult]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    time_taken_seconds: Optional[int]


def load_theme(store: KeyValueStore) -> str:
    try:
        theme = store.get(THEME_KEY)
    except PersistenceError as e:
        logger.warning("Could not read theme preference: %s", e)
        return "light"
    return theme if theme in THEMES else "light"


def save_theme(store: KeyValueStore, theme: str) -> None:
    if theme not in THEMES:
        raise ValueError(f"Unknown theme: {theme}")
    store.set(THEME_KEY, theme)
