"""Per-word phase machine for the daily practice flow."""
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Set, Tuple

from dailyvocab.config import settings
from dailyvocab.exceptions import AssessmentError, AssessmentInProgress, InvalidTransition
from dailyvocab.models.assessment_models import AssessmentRequest, Verdict, validate_user_input
from dailyvocab.models.word_models import Feedback, Phase, SentenceFeedback, WordEntry, WordState
from dailyvocab.monitoring import (
    assessment_duration,
    assessment_failures,
    assessment_requests,
    phase_transitions,
)
from dailyvocab.services.judges import Judge

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Couldn't check, try again!"


class PhaseMachine:
    """Applies learner actions to a word's state.

    Transitions return a new WordState and never mutate the one given.
    Judge failures still advance the word, with score 0 and a retry message.
    """

    def __init__(
        self,
        judge: Judge,
        max_input_length: Optional[int] = None,
        dismiss_threshold: Optional[int] = None,
        pending: Optional[Set[Tuple[str, str]]] = None,
        owner: str = "",
    ):
        self.judge = judge
        self.max_input_length = max_input_length or settings.learning.max_input_length
        self.dismiss_threshold = dismiss_threshold or settings.learning.dismiss_threshold
        # (owner, term) pairs with a judge call under way; may be shared across machines
        self.pending: Set[Tuple[str, str]] = pending if pending is not None else set()
        self.owner = owner

    @contextmanager
    def _in_flight(self, term: str) -> Iterator[None]:
        key = (self.owner, term)
        if key in self.pending:
            raise AssessmentInProgress(term)
        self.pending.add(key)
        try:
            yield
        finally:
            self.pending.discard(key)

    async def submit_definition(
        self,
        entry: WordEntry,
        state: WordState,
        text: str,
        already_known: bool = False,
    ) -> WordState:
        """Judge the learner's definition and reveal the reference.

        With `already_known`, a score at or above the dismissal threshold
        dismisses the word instead. A retry after a failed check keeps the
        choice made on the first submission.
        """
        trigger = "submit a definition"
        retry = state.phase is Phase.REVEALED and _failed(state.definition_feedback)
        if state.phase is not Phase.DEFINING and not retry:
            raise InvalidTransition(entry.term, state.phase.value, trigger)
        text = validate_user_input(text, self.max_input_length)
        if retry:
            already_known = already_known or state.already_known

        with self._in_flight(entry.term):
            verdict = await self._assess(AssessmentRequest.for_definition(entry, text))

        if verdict is None:
            feedback = Feedback(score=0, feedback=FALLBACK_MESSAGE)
        else:
            feedback = Feedback(score=verdict.score, feedback=verdict.feedback)

        phase = Phase.REVEALED
        if already_known and feedback.score >= self.dismiss_threshold:
            phase = Phase.DISMISSED
        return self._transition(
            entry, state.evolve(
                phase=phase,
                user_definition=text,
                definition_feedback=feedback,
                already_known=already_known,
            )
        )

    def start_sentence(self, entry: WordEntry, state: WordState) -> WordState:
        if state.phase is not Phase.REVEALED:
            raise InvalidTransition(entry.term, state.phase.value, "start a sentence")
        return self._transition(entry, state.evolve(phase=Phase.COMPOSING_SENTENCE))

    async def submit_sentence(self, entry: WordEntry, state: WordState, text: str) -> WordState:
        """Judge the learner's example sentence."""
        retry = state.phase is Phase.GRADED and _failed(state.sentence_feedback)
        if state.phase is not Phase.COMPOSING_SENTENCE and not retry:
            raise InvalidTransition(entry.term, state.phase.value, "submit a sentence")
        text = validate_user_input(text, self.max_input_length)

        with self._in_flight(entry.term):
            verdict = await self._assess(AssessmentRequest.for_sentence(entry, text))

        if verdict is None:
            feedback = SentenceFeedback(score=0, feedback=FALLBACK_MESSAGE, improved="")
        else:
            feedback = SentenceFeedback(score=verdict.score, feedback=verdict.feedback, improved=verdict.improved or "")
        return self._transition(
            entry, state.evolve(phase=Phase.GRADED, user_sentence=text, sentence_feedback=feedback)
        )

    def mark_known(self, entry: WordEntry, state: WordState) -> WordState:
        """Finish a revealed word without writing a sentence."""
        if state.phase is not Phase.REVEALED:
            raise InvalidTransition(entry.term, state.phase.value, "mark as known")
        return self._transition(entry, state.evolve(phase=Phase.DISMISSED))

    def skip_sentence(self, entry: WordEntry, state: WordState) -> WordState:
        if state.phase is not Phase.COMPOSING_SENTENCE:
            raise InvalidTransition(entry.term, state.phase.value, "skip the sentence")
        return self._transition(entry, state.evolve(phase=Phase.DISMISSED))

    async def _assess(self, request: AssessmentRequest) -> Optional[Verdict]:
        """Ask the judge once. Returns None when no usable verdict came back."""
        mode = request.mode.value
        assessment_requests.labels(mode=mode).inc()
        started = time.perf_counter()
        try:
            verdict = await self.judge.assess(request)
        except AssessmentError as e:
            logger.warning(f"Assessment of {mode} for '{request.word}' failed: {e}")
            assessment_failures.labels(error_type=type(e).__name__).inc()
            return None
        except Exception as e:
            logger.exception(f"Unexpected judge error for '{request.word}': {e}")
            assessment_failures.labels(error_type=type(e).__name__).inc()
            return None
        finally:
            assessment_duration.labels(mode=mode).observe(time.perf_counter() - started)

        if isinstance(verdict.score, bool) or not isinstance(verdict.score, int) or not 1 <= verdict.score <= 5:
            logger.warning(f"Discarding out-of-range score {verdict.score!r} for '{request.word}'")
            assessment_failures.labels(error_type="InvalidScore").inc()
            return None
        logger.info(f"Assessed {mode} for '{request.word}': score {verdict.score}")
        return verdict

    def _transition(self, entry: WordEntry, state: WordState) -> WordState:
        phase_transitions.labels(phase=state.phase.value).inc()
        logger.debug(f"'{entry.term}' -> {state.phase.value}")
        return state


def _failed(feedback: Optional[Feedback]) -> bool:
    return feedback is not None and feedback.is_fallback
