"""Client-held progress store: per-day, per-word practice state."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Union

from dailyvocab.config import settings
from dailyvocab.models.word_models import ProgressStore, WordState
from dailyvocab.monitoring import corrupt_state_loads

logger = logging.getLogger(__name__)

STATE_KEY = "sat-vocab-state"
COUNT_KEY = "sat-vocab-count"


class StorageSlot(ABC):
    """A small string key-value area that outlives a single request."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError("Subclasses must implement this method")


class MemorySlot(StorageSlot):
    """Slot kept in a dict. Used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class FileSlot(StorageSlot):
    """Slot stored as one JSON object in a local file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else settings.paths.progress_file

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read progress file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(self.path)


class SessionSlot(StorageSlot):
    """Slot backed by a Flask session, i.e. a signed cookie held by the browser."""

    def __init__(self, session: MutableMapping[str, Any]):
        self.session = session

    def get(self, key: str) -> Optional[str]:
        value = self.session.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.session[key] = value


def serialize_store(store: ProgressStore) -> str:
    """Encode a store as the JSON blob kept in the slot."""
    return json.dumps(
        {day: {term: state.to_data() for term, state in words.items()} for day, words in store.items()},
        separators=(",", ":"),
    )


def deserialize_store(blob: Optional[str]) -> ProgressStore:
    """Decode a stored blob. Unusable data degrades to an empty store."""
    if not blob:
        return {}
    try:
        raw = json.loads(blob)
    except json.JSONDecodeError as e:
        logger.warning(f"Discarding corrupt progress state: {e}")
        corrupt_state_loads.inc()
        return {}
    if not isinstance(raw, dict):
        logger.warning("Discarding progress state that is not an object")
        corrupt_state_loads.inc()
        return {}

    store: ProgressStore = {}
    for day, words in raw.items():
        if not isinstance(words, dict):
            logger.warning(f"Dropping malformed progress for {day}")
            continue
        day_states: Dict[str, WordState] = {}
        for term, data in words.items():
            try:
                day_states[term] = WordState.from_data(data)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Dropping malformed state for {term} on {day}: {e}")
        store[day] = day_states
    return store


def get_state_for(store: ProgressStore, day: str, term: str) -> WordState:
    """Existing state for (day, term), or a fresh one in the defining phase."""
    return store.get(day, {}).get(term) or WordState()


def put_state_for(store: ProgressStore, day: str, term: str, state: WordState) -> ProgressStore:
    """Return a new store with one entry replaced. The caller persists it."""
    updated = dict(store)
    updated[day] = {**store.get(day, {}), term: state}
    return updated


class ProgressRepository:
    """Loads and saves the progress store and the words-per-day preference."""

    def __init__(self, slot: StorageSlot, default_count: Optional[int] = None, allowed_counts=None):
        self.slot = slot
        self.default_count = default_count or settings.learning.default_word_count
        self.allowed_counts = tuple(allowed_counts or settings.learning.allowed_word_counts)

    def load(self) -> ProgressStore:
        return deserialize_store(self.slot.get(STATE_KEY))

    def save(self, store: ProgressStore) -> None:
        self.slot.set(STATE_KEY, serialize_store(store))

    def load_word_count(self) -> int:
        raw = self.slot.get(COUNT_KEY)
        try:
            count = int(raw) if raw is not None else self.default_count
        except ValueError:
            logger.warning(f"Ignoring invalid word count preference {raw!r}")
            return self.default_count
        return count if count in self.allowed_counts else self.default_count

    def save_word_count(self, count: int) -> None:
        if count not in self.allowed_counts:
            raise ValueError(f"Word count must be one of {self.allowed_counts}")
        self.slot.set(COUNT_KEY, str(count))
