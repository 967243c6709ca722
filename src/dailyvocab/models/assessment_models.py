"""Models for judge requests and verdicts."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from dailyvocab.exceptions import InvalidInput
from dailyvocab.models.word_models import WordEntry


class AssessmentMode(Enum):
    """What the learner submitted."""
    DEFINITION = "definition"
    SENTENCE = "sentence"


@dataclass(frozen=True)
class AssessmentRequest:
    """A learner text to be judged, with the reference material for its word."""
    mode: AssessmentMode
    word: str
    user_input: str
    actual_definition: Optional[str] = None
    definition: Optional[str] = None
    connotation: Optional[str] = None

    @classmethod
    def for_definition(cls, entry: WordEntry, text: str) -> "AssessmentRequest":
        return cls(
            mode=AssessmentMode.DEFINITION,
            word=entry.term,
            user_input=text,
            actual_definition=entry.definition,
            connotation=entry.connotation_note,
        )

    @classmethod
    def for_sentence(cls, entry: WordEntry, text: str) -> "AssessmentRequest":
        return cls(
            mode=AssessmentMode.SENTENCE,
            word=entry.term,
            user_input=text,
            definition=entry.definition,
            connotation=entry.connotation_note,
        )

    @property
    def reference_definition(self) -> str:
        return self.actual_definition or self.definition or ""

    def validate(self, max_length: int) -> None:
        """Reject empty or over-long learner input."""
        validate_user_input(self.user_input, max_length)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.mode.value, "word": self.word}
        if self.actual_definition is not None:
            data["actualDefinition"] = self.actual_definition
        if self.definition is not None:
            data["definition"] = self.definition
        if self.connotation is not None:
            data["connotation"] = self.connotation
        data["userInput"] = self.user_input
        return data

    @classmethod
    def from_json(cls, data: Any) -> "AssessmentRequest":
        """Parse the wire shape. Raises InvalidInput on an unusable body."""
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be a JSON object")
        try:
            mode = AssessmentMode(data.get("type"))
        except ValueError:
            raise InvalidInput("Invalid type") from None
        word = data.get("word")
        user_input = data.get("userInput")
        if not isinstance(word, str) or not word.strip():
            raise InvalidInput("Missing word")
        if not isinstance(user_input, str):
            raise InvalidInput("Missing userInput")
        return cls(
            mode=mode,
            word=word,
            user_input=user_input,
            actual_definition=_optional_str(data.get("actualDefinition")),
            definition=_optional_str(data.get("definition")),
            connotation=_optional_str(data.get("connotation")),
        )


@dataclass(frozen=True)
class Verdict:
    """Validated judge output. `improved` is only set in sentence mode."""
    score: int
    feedback: str
    improved: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"score": self.score, "feedback": self.feedback}
        if self.improved is not None:
            data["improved"] = self.improved
        return data


def validate_user_input(text: Any, max_length: int) -> str:
    """Return the stripped text or raise InvalidInput."""
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("Please write something first.")
    text = text.strip()
    if len(text) > max_length:
        raise InvalidInput(f"Please keep it under {max_length} characters.")
    return text


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None
