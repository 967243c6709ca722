"""Exceptions raised by the trainer."""


class DailyVocabError(Exception):
    """Base class for trainer errors."""


class WordBankError(DailyVocabError):
    """The word bank could not be loaded or is inconsistent."""


class InvalidInput(DailyVocabError, ValueError):
    """Learner input was empty or too long."""


class InvalidTransition(DailyVocabError):
    """A trigger was applied to a word in a phase that does not accept it."""

    def __init__(self, term: str, phase: str, trigger: str):
        super().__init__(f"Cannot {trigger} for '{term}' in phase '{phase}'")
        self.term = term
        self.phase = phase
        self.trigger = trigger


class AssessmentInProgress(DailyVocabError):
    """An assessment for the same word is still pending."""

    def __init__(self, term: str):
        super().__init__(f"Assessment already in progress for '{term}'")
        self.term = term


class AssessmentError(DailyVocabError):
    """The judge could not produce a usable assessment."""
