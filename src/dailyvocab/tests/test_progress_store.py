"""Tests for the progress store."""
import json
from pathlib import Path

import pytest

from dailyvocab.models.word_models import Feedback, Phase, SentenceFeedback, WordState
from dailyvocab.services.progress_store import (
    COUNT_KEY,
    STATE_KEY,
    FileSlot,
    MemorySlot,
    ProgressRepository,
    SessionSlot,
    deserialize_store,
    get_state_for,
    put_state_for,
    serialize_store,
)


@pytest.fixture
def store():
    return {
        "2024-03-01": {
            "abate": WordState(
                phase=Phase.REVEALED,
                user_definition="to lessen",
                definition_feedback=Feedback(score=4, feedback="Good."),
            ),
            "laconic": WordState(
                phase=Phase.GRADED,
                user_definition="terse",
                definition_feedback=Feedback(score=5, feedback="Yes."),
                user_sentence="His laconic reply ended the debate.",
                sentence_feedback=SentenceFeedback(score=4, feedback="Good.", improved="A laconic nod."),
            ),
        },
        "2024-02-29": {"zealous": WordState(phase=Phase.DISMISSED)},
    }


def test_save_then_load_round_trip(repository: ProgressRepository, store) -> None:
    repository.save(store)
    assert repository.load() == store


def test_missing_state_loads_empty(repository: ProgressRepository) -> None:
    assert repository.load() == {}


@pytest.mark.parametrize("blob", ["{not json", "[]", "42", "null", '"text"'])
def test_corrupt_state_loads_empty(blob: str) -> None:
    repository = ProgressRepository(MemorySlot({STATE_KEY: blob}), default_count=5, allowed_counts=(3, 4, 5))
    assert repository.load() == {}


def test_malformed_entries_are_dropped_individually() -> None:
    blob = json.dumps(
        {
            "2024-03-01": {
                "abate": {"phase": "revealed", "definitionFeedback": {"score": 3, "feedback": "Vague."}},
                "laconic": {"phase": "bogus"},
                "zealous": "done",
                "tenacious": {"definitionFeedback": {}},
            },
            "2024-02-29": ["not", "a", "mapping"],
        }
    )
    store = deserialize_store(blob)
    assert list(store) == ["2024-03-01"]
    assert list(store["2024-03-01"]) == ["abate"]
    assert store["2024-03-01"]["abate"].definition_feedback.score == 3


def test_reads_state_written_by_browser_client() -> None:
    blob = '{"2024-03-01":{"abate":{"phase":"feedback","userSentence":"The storm abated.","sentenceFeedback":{"score":3,"feedback":"Flat.","improved":"By dusk the gale had abated."}}}}'
    state = deserialize_store(blob)["2024-03-01"]["abate"]
    assert state.phase is Phase.GRADED
    assert state.sentence_feedback.improved == "By dusk the gale had abated."


def test_get_state_for_defaults_to_defining(store) -> None:
    assert get_state_for(store, "2024-03-01", "abate").phase is Phase.REVEALED
    assert get_state_for(store, "2024-03-01", "unknown") == WordState()
    assert get_state_for(store, "2030-01-01", "abate") == WordState()


def test_put_state_for_is_pure(store) -> None:
    new_state = WordState(phase=Phase.COMPOSING_SENTENCE)
    updated = put_state_for(store, "2024-03-01", "abate", new_state)
    assert updated["2024-03-01"]["abate"] is new_state
    assert updated["2024-03-01"]["laconic"] == store["2024-03-01"]["laconic"]
    assert store["2024-03-01"]["abate"].phase is Phase.REVEALED
    assert updated["2024-02-29"] == store["2024-02-29"]


def test_put_state_for_creates_new_day() -> None:
    updated = put_state_for({}, "2024-03-01", "abate", WordState())
    assert updated == {"2024-03-01": {"abate": WordState()}}


def test_serialized_store_is_compact_json(store) -> None:
    blob = serialize_store(store)
    assert '": ' not in blob
    assert json.loads(blob)["2024-02-29"] == {"zealous": {"phase": "done"}}


def test_word_count_preference(repository: ProgressRepository, slot: MemorySlot) -> None:
    assert repository.load_word_count() == 5
    repository.save_word_count(3)
    assert slot.get(COUNT_KEY) == "3"
    assert repository.load_word_count() == 3


@pytest.mark.parametrize("raw", ["7", "0", "abc", "-4"])
def test_invalid_word_count_falls_back_to_default(raw: str) -> None:
    repository = ProgressRepository(MemorySlot({COUNT_KEY: raw}), default_count=5, allowed_counts=(3, 4, 5))
    assert repository.load_word_count() == 5


def test_save_word_count_rejects_unsupported_values(repository: ProgressRepository) -> None:
    with pytest.raises(ValueError):
        repository.save_word_count(6)


def test_file_slot_persists_across_instances(tmp_path: Path, store) -> None:
    path = tmp_path / "nested" / "progress.json"
    ProgressRepository(FileSlot(path), default_count=5, allowed_counts=(3, 4, 5)).save(store)
    reopened = ProgressRepository(FileSlot(path), default_count=5, allowed_counts=(3, 4, 5))
    assert reopened.load() == store


def test_file_slot_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("{{{", encoding="utf-8")
    slot = FileSlot(path)
    assert slot.get(STATE_KEY) is None
    slot.set(COUNT_KEY, "4")
    assert FileSlot(path).get(COUNT_KEY) == "4"


def test_session_slot_ignores_non_string_values() -> None:
    session = {STATE_KEY: {"oops": 1}}
    slot = SessionSlot(session)
    assert slot.get(STATE_KEY) is None
    slot.set(COUNT_KEY, "3")
    assert session[COUNT_KEY] == "3"
