"""Judges that score learner definitions and sentences."""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

import httpx

from dailyvocab.config import JudgeSettings, settings
from dailyvocab.exceptions import AssessmentError
from dailyvocab.models.assessment_models import AssessmentMode, AssessmentRequest, Verdict
from dailyvocab.monitoring import rate_limited_requests

logger = logging.getLogger(__name__)

DEFINITION_SYSTEM_PROMPT = """You are an SAT vocabulary tutor. Assess whether a student's definition captures the meaning and CONNOTATION of a word. Be encouraging but honest.

Respond in EXACTLY this JSON format (no markdown, no code fences):
{"score": <1-5>, "feedback": "<1-2 sentences>"}

Scoring:
5 = Correct meaning AND connotation
4 = Correct meaning, minor connotation gap
3 = Roughly correct but vague
2 = Partially correct with significant gaps
1 = Wrong or extremely vague"""

SENTENCE_SYSTEM_PROMPT = """You are an SAT vocabulary tutor. Assess whether a student's sentence correctly uses a vocabulary word with proper connotation. Then provide an improved or alternative sample sentence.

Respond in EXACTLY this JSON format (no markdown, no code fences):
{"score": <1-5>, "feedback": "<1-2 sentences about their usage>", "improved": "<a polished sample sentence using the word>"}

Scoring:
5 = Vivid usage with correct connotation
4 = Correct usage, could be more vivid
3 = Correct but flat or generic
2 = Awkward usage or wrong connotation
1 = Incorrect usage"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_verdict(data: Any, mode: AssessmentMode) -> Verdict:
    """Validate untrusted judge output. Raises AssessmentError if malformed."""
    if not isinstance(data, dict):
        raise AssessmentError("Judge response is not a JSON object")

    score = data.get("score")
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    if isinstance(score, bool) or not isinstance(score, int):
        raise AssessmentError(f"Judge score is not an integer: {score!r}")
    if not 1 <= score <= 5:
        raise AssessmentError(f"Judge score out of range: {score}")

    feedback = data.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        raise AssessmentError("Judge feedback is missing")

    if mode is AssessmentMode.SENTENCE:
        improved = data.get("improved")
        if not isinstance(improved, str):
            raise AssessmentError("Judge sample sentence is missing")
        return Verdict(score=score, feedback=feedback.strip(), improved=improved.strip())
    return Verdict(score=score, feedback=feedback.strip())


def parse_verdict_text(text: str, mode: AssessmentMode) -> Verdict:
    """Parse a judge's raw text reply, tolerating a surrounding code fence."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AssessmentError(f"Judge reply is not JSON: {e}") from e
    return parse_verdict(data, mode)


class Judge(ABC):
    """Scoring capability for learner input."""

    name: str = "base"

    async def assess(self, request: AssessmentRequest) -> Verdict:
        """Dispatch on the request mode."""
        if request.mode is AssessmentMode.DEFINITION:
            return await self.assess_definition(request)
        return await self.assess_sentence(request)

    @abstractmethod
    async def assess_definition(self, request: AssessmentRequest) -> Verdict:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    async def assess_sentence(self, request: AssessmentRequest) -> Verdict:
        raise NotImplementedError("Subclasses must implement this method")


class AnthropicJudge(Judge):
    """Judge backed by the Anthropic Messages API."""

    name = "anthropic"

    def __init__(self, config: Optional[JudgeSettings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or settings.judge
        self.transport = transport

    async def assess_definition(self, request: AssessmentRequest) -> Verdict:
        user_prompt = (
            f"Word: {request.word}\n"
            f"Actual definition: {request.reference_definition}\n"
            f"Connotation note: {request.connotation or ''}\n"
            f'Student\'s definition: "{request.user_input}"'
        )
        text = await self._call(DEFINITION_SYSTEM_PROMPT, user_prompt)
        return parse_verdict_text(text, AssessmentMode.DEFINITION)

    async def assess_sentence(self, request: AssessmentRequest) -> Verdict:
        user_prompt = (
            f"Word: {request.word}\n"
            f"Definition: {request.reference_definition}\n"
            f"Connotation: {request.connotation or ''}\n"
            f'Student\'s sentence: "{request.user_input}"'
        )
        text = await self._call(SENTENCE_SYSTEM_PROMPT, user_prompt)
        return parse_verdict_text(text, AssessmentMode.SENTENCE)

    async def _call(self, system_prompt: str, user_prompt: str) -> str:
        """Send one message request and return the reply text."""
        if not self.config.api_key:
            raise AssessmentError("No API key configured")

        payload = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        headers = {
            "content-type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
        }
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self.transport) as client:
                response = await client.post(self.config.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise AssessmentError(f"Anthropic API request failed: {e}") from e

        if response.is_error:
            raise AssessmentError(f"Anthropic API error: {response.status_code} {response.text[:200]}")

        try:
            data = response.json()
            blocks = data["content"]
            return "".join(block["text"] for block in blocks if block.get("type") == "text")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AssessmentError(f"Unexpected Anthropic API response: {e}") from e


class HttpJudge(Judge):
    """Judge that forwards requests to a remote /api/assess endpoint."""

    name = "http"

    def __init__(self, url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def assess_definition(self, request: AssessmentRequest) -> Verdict:
        return await self._post(request)

    async def assess_sentence(self, request: AssessmentRequest) -> Verdict:
        return await self._post(request)

    async def _post(self, request: AssessmentRequest) -> Verdict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=request.to_json())
        except httpx.HTTPError as e:
            raise AssessmentError(f"Assessment service unreachable: {e}") from e

        if response.status_code == 429:
            raise AssessmentError("Assessment service rate limit exceeded")
        if response.is_error:
            raise AssessmentError(f"Assessment service error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise AssessmentError(f"Assessment service returned invalid JSON: {e}") from e
        return parse_verdict(data, request.mode)


_STOPWORDS = {"that", "this", "with", "from", "into", "being", "having", "something", "someone", "which", "their"}
_WORD_RE = re.compile(r"[a-z]+")


def _content_words(text: str) -> Set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) > 3 and w not in _STOPWORDS}


class StubJudge(Judge):
    """Deterministic offline judge.

    Definitions score by word overlap with the reference definition;
    sentences score by whether they use the term. `scores` pins the score
    for a term and `failing` lists terms whose assessment raises.
    """

    name = "stub"

    def __init__(self, scores: Optional[Dict[str, int]] = None, failing: Optional[Set[str]] = None):
        self.scores = dict(scores or {})
        self.failing = set(failing or ())
        self.calls: List[AssessmentRequest] = []

    async def assess_definition(self, request: AssessmentRequest) -> Verdict:
        self._record(request)
        score = self.scores.get(request.word)
        if score is None:
            reference = _content_words(request.reference_definition)
            overlap = len(reference & _content_words(request.user_input))
            ratio = overlap / len(reference) if reference else 0.0
            score = max(1, min(5, 1 + int(ratio * 4 + 0.5)))
        return Verdict(score=score, feedback=_DEFINITION_FEEDBACK[score])

    async def assess_sentence(self, request: AssessmentRequest) -> Verdict:
        self._record(request)
        score = self.scores.get(request.word)
        if score is None:
            if request.word.lower() not in request.user_input.lower():
                score = 1
            else:
                score = 4 if len(request.user_input.split()) >= 8 else 3
        improved = f"Even the harshest critics conceded that the ending was {request.word}."
        return Verdict(score=score, feedback=_SENTENCE_FEEDBACK[score], improved=improved)

    def _record(self, request: AssessmentRequest) -> None:
        self.calls.append(request)
        if request.word in self.failing:
            raise AssessmentError(f"Stub judge configured to fail for '{request.word}'")


_DEFINITION_FEEDBACK = {
    1: "That meaning doesn't match the word.",
    2: "Part of the idea is there, but key pieces are missing.",
    3: "Roughly right, but a little vague.",
    4: "Good definition; the connotation could be sharper.",
    5: "Spot on, meaning and connotation both.",
}

_SENTENCE_FEEDBACK = {
    1: "The word isn't used correctly here.",
    2: "The usage is awkward or the tone is off.",
    3: "Correct, but the sentence is a bit flat.",
    4: "Correct usage; a more vivid context would make it shine.",
    5: "Vivid and precise usage.",
}


def create_judge(config: Optional[JudgeSettings] = None) -> Judge:
    """Build the judge selected by JUDGE_BACKEND."""
    config = config or settings.judge
    if config.backend == "stub":
        logger.info("Using stub judge")
        return StubJudge()
    if config.backend == "http":
        logger.info(f"Forwarding assessments to {config.url}")
        return HttpJudge(config.url, timeout=config.timeout)
    if not config.api_key:
        logger.warning("ANTHROPIC_API_KEY is not set; assessments will fall back to the retry message")
    return AnthropicJudge(config)


class RateLimitedJudge(Judge):
    """Wraps a judge so requests over a client's rate limit fail like any other error."""

    def __init__(self, judge: Judge, limiter, client_id: str):
        self.judge = judge
        self.limiter = limiter
        self.client_id = client_id
        self.name = judge.name

    def _check(self) -> None:
        result = self.limiter.check(self.client_id)
        if not result.allowed:
            rate_limited_requests.inc()
            raise AssessmentError(f"Rate limit exceeded for {self.client_id}")

    async def assess_definition(self, request: AssessmentRequest) -> Verdict:
        self._check()
        return await self.judge.assess_definition(request)

    async def assess_sentence(self, request: AssessmentRequest) -> Verdict:
        self._check()
        return await self.judge.assess_sentence(request)
