"""Models for word bank entries and per-word practice state."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


TIER_LABELS = {1: "common", 2: "advanced", 3: "rare"}


class Phase(Enum):
    """Steps of a single word's practice flow for the day."""
    DEFINING = "define"  # Waiting for the learner's definition
    REVEALED = "revealed"  # Definition judged, reference shown
    COMPOSING_SENTENCE = "sentence"  # Waiting for an example sentence
    GRADED = "feedback"  # Sentence judged
    DISMISSED = "done"  # Learner already knows the word

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.GRADED, Phase.DISMISSED)


@dataclass(frozen=True)
class WordEntry:
    """Vocabulary entry from the word bank."""
    term: str
    definition: str
    connotation_note: str
    etymology: str
    tier: int

    @property
    def tier_label(self) -> str:
        return TIER_LABELS.get(self.tier, "common")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordEntry":
        """Create an entry from its word bank JSON object."""
        return cls(
            term=data["word"],
            definition=data["definition"],
            connotation_note=data["connotation"],
            etymology=data["roots"],
            tier=data["tier"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.term,
            "definition": self.definition,
            "connotation": self.connotation_note,
            "roots": self.etymology,
            "tier": self.tier,
        }


@dataclass(frozen=True)
class Feedback:
    """Judge verdict on a definition. Score 0 marks a failed assessment."""
    score: int
    feedback: str

    @property
    def is_fallback(self) -> bool:
        return self.score == 0

    def to_data(self) -> Dict[str, Any]:
        return {"score": self.score, "feedback": self.feedback}

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Feedback":
        return cls(score=int(data["score"]), feedback=str(data["feedback"]))


@dataclass(frozen=True)
class SentenceFeedback(Feedback):
    """Judge verdict on an example sentence, with a sample sentence."""
    improved: str = ""

    def to_data(self) -> Dict[str, Any]:
        data = super().to_data()
        data["improved"] = self.improved
        return data

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "SentenceFeedback":
        return cls(
            score=int(data["score"]),
            feedback=str(data["feedback"]),
            improved=str(data.get("improved") or ""),
        )


@dataclass(frozen=True)
class WordState:
    """Practice state of one word on one day."""
    phase: Phase = Phase.DEFINING
    user_definition: Optional[str] = None
    definition_feedback: Optional[Feedback] = None
    user_sentence: Optional[str] = None
    sentence_feedback: Optional[SentenceFeedback] = None
    already_known: bool = False  # learner chose "I already know this"

    def evolve(self, **changes: Any) -> "WordState":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_data(self) -> Dict[str, Any]:
        """Convert to the JSON shape kept in client storage."""
        data: Dict[str, Any] = {"phase": self.phase.value}
        if self.user_definition is not None:
            data["userDefinition"] = self.user_definition
        if self.definition_feedback is not None:
            data["definitionFeedback"] = self.definition_feedback.to_data()
        if self.user_sentence is not None:
            data["userSentence"] = self.user_sentence
        if self.sentence_feedback is not None:
            data["sentenceFeedback"] = self.sentence_feedback.to_data()
        if self.already_known:
            data["alreadyKnown"] = True
        return data

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordState":
        """Create a state from stored data. Raises on malformed input."""
        definition_feedback = data.get("definitionFeedback")
        sentence_feedback = data.get("sentenceFeedback")
        return cls(
            phase=Phase(data["phase"]),
            user_definition=data.get("userDefinition"),
            definition_feedback=Feedback.from_data(definition_feedback) if definition_feedback else None,
            user_sentence=data.get("userSentence"),
            sentence_feedback=SentenceFeedback.from_data(sentence_feedback) if sentence_feedback else None,
            already_known=bool(data.get("alreadyKnown", False)),
        )


# day key -> term -> state
ProgressStore = Dict[str, Dict[str, WordState]]
