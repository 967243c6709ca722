"""Service driving one learner's practice for the current day."""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from dailyvocab.exceptions import InvalidInput
from dailyvocab.models.word_models import Phase, WordEntry, WordState
from dailyvocab.monitoring import word_count_changes
from dailyvocab.services.judges import Judge
from dailyvocab.services.phase_machine import PhaseMachine
from dailyvocab.services.progress_store import ProgressRepository, get_state_for, put_state_for
from dailyvocab.services.selector import day_key, select_daily
from dailyvocab.services.word_bank import index_by_term

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WordSummary:
    """End-of-day line for one word. Scores are 0 when absent or failed."""
    term: str
    phase: Phase
    definition_score: int
    sentence_score: int

    @property
    def reviewed_only(self) -> bool:
        return self.phase is Phase.DISMISSED and not self.sentence_score


class DailySession:
    """Today's words for one learner, with state rehydrated from storage.

    Every state change is written back through the repository before the
    method returns.
    """

    def __init__(
        self,
        bank: Sequence[WordEntry],
        repository: ProgressRepository,
        judge: Optional[Judge] = None,
        machine: Optional[PhaseMachine] = None,
        day: Optional[str] = None,
    ):
        if machine is None:
            if judge is None:
                raise ValueError("Either judge or machine is required")
            machine = PhaseMachine(judge)
        self.bank = list(bank)
        self.repository = repository
        self.machine = machine
        self.day = day or day_key()
        self.word_count = repository.load_word_count()
        self.words = select_daily(self.bank, self.day, self.word_count)
        self.store = repository.load()

    def entry(self, term: str) -> WordEntry:
        """Today's entry for `term`. Raises KeyError for words not selected today."""
        return index_by_term(self.words)[term]

    def state(self, term: str) -> WordState:
        self.entry(term)
        return get_state_for(self.store, self.day, term)

    @property
    def states(self) -> List[Tuple[WordEntry, WordState]]:
        return [(word, get_state_for(self.store, self.day, word.term)) for word in self.words]

    def _put(self, term: str, state: WordState) -> WordState:
        self.store = put_state_for(self.store, self.day, term, state)
        self.repository.save(self.store)
        return state

    async def submit_definition(self, term: str, text: str, already_known: bool = False) -> WordState:
        entry = self.entry(term)
        new_state = await self.machine.submit_definition(entry, self.state(term), text, already_known)
        return self._put(term, new_state)

    def start_sentence(self, term: str) -> WordState:
        entry = self.entry(term)
        return self._put(term, self.machine.start_sentence(entry, self.state(term)))

    async def submit_sentence(self, term: str, text: str) -> WordState:
        entry = self.entry(term)
        new_state = await self.machine.submit_sentence(entry, self.state(term), text)
        return self._put(term, new_state)

    def mark_known(self, term: str) -> WordState:
        entry = self.entry(term)
        return self._put(term, self.machine.mark_known(entry, self.state(term)))

    def skip_sentence(self, term: str) -> WordState:
        entry = self.entry(term)
        return self._put(term, self.machine.skip_sentence(entry, self.state(term)))

    def set_word_count(self, count: int) -> None:
        """Store the words-per-day preference and reselect today's words."""
        try:
            self.repository.save_word_count(count)
        except ValueError as e:
            raise InvalidInput(str(e)) from e
        if count != self.word_count:
            word_count_changes.labels(count=str(count)).inc()
            logger.info(f"Words per day changed from {self.word_count} to {count}")
        self.word_count = count
        self.words = select_daily(self.bank, self.day, count)

    @property
    def completed_count(self) -> int:
        return sum(1 for _, state in self.states if state.phase.is_terminal)

    @property
    def is_complete(self) -> bool:
        return bool(self.words) and self.completed_count == len(self.words)

    def summary(self) -> List[WordSummary]:
        lines = []
        for word, state in self.states:
            lines.append(
                WordSummary(
                    term=word.term,
                    phase=state.phase,
                    definition_score=state.definition_feedback.score if state.definition_feedback else 0,
                    sentence_score=state.sentence_feedback.score if state.sentence_feedback else 0,
                )
            )
        return lines
