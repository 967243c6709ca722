"""Tests for the judges."""
import json

import httpx
import pytest

from dailyvocab.config import JudgeSettings
from dailyvocab.exceptions import AssessmentError
from dailyvocab.models.assessment_models import AssessmentMode, AssessmentRequest
from dailyvocab.services.judges import (
    AnthropicJudge,
    HttpJudge,
    RateLimitedJudge,
    StubJudge,
    create_judge,
    parse_verdict,
    parse_verdict_text,
)
from dailyvocab.services.rate_limiter import SlidingWindowRateLimiter


def judge_settings(**overrides) -> JudgeSettings:
    values = dict(backend="anthropic", api_key="test-key", api_url="https://api.test/v1/messages", timeout=5.0)
    values.update(overrides)
    return JudgeSettings(**values)


def anthropic_reply(text: str) -> dict:
    return {"id": "msg_1", "type": "message", "content": [{"type": "text", "text": text}]}


def transport_returning(status: int, body) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_anthropic_definition_request_shape(entry) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=anthropic_reply('{"score": 4, "feedback": "Good, but note the wistful tone."}'))

    judge = AnthropicJudge(judge_settings(), transport=httpx.MockTransport(handler))
    verdict = await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))

    assert verdict.score == 4
    assert verdict.feedback == "Good, but note the wistful tone."
    assert verdict.improved is None
    assert seen["url"] == "https://api.test/v1/messages"
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["max_tokens"] == 300
    assert "CONNOTATION" in seen["body"]["system"]
    prompt = seen["body"]["messages"][0]["content"]
    assert "Word: ephemeral" in prompt
    assert "Actual definition: Lasting for a very short time." in prompt
    assert 'Student\'s definition: "short-lived"' in prompt


@pytest.mark.asyncio
async def test_anthropic_sentence_verdict(entry) -> None:
    reply = anthropic_reply('{"score": 3, "feedback": "Correct but flat.", "improved": "The ephemeral glow of fireworks lingered."}')
    judge = AnthropicJudge(judge_settings(), transport=transport_returning(200, reply))
    verdict = await judge.assess(AssessmentRequest.for_sentence(entry, "It was ephemeral."))
    assert verdict.score == 3
    assert verdict.improved == "The ephemeral glow of fireworks lingered."


@pytest.mark.asyncio
async def test_anthropic_reply_in_code_fence_is_accepted(entry) -> None:
    reply = anthropic_reply('```json\n{"score": 2, "feedback": "Significant gaps."}\n```')
    judge = AnthropicJudge(judge_settings(), transport=transport_returning(200, reply))
    verdict = await judge.assess(AssessmentRequest.for_definition(entry, "happy"))
    assert verdict.score == 2


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_network(entry) -> None:
    def handler(request):
        raise AssertionError("no request expected")

    judge = AnthropicJudge(judge_settings(api_key=""), transport=httpx.MockTransport(handler))
    with pytest.raises(AssessmentError, match="No API key"):
        await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, body",
    [
        (500, {"error": "overloaded"}),
        (429, {"error": "rate limited"}),
        (200, "not json at all"),
        (200, {"content": "unexpected"}),
        (200, anthropic_reply("I think this deserves a 4.")),
        (200, anthropic_reply('{"score": 7, "feedback": "Great!"}')),
        (200, anthropic_reply('{"score": "5", "feedback": "Great!"}')),
        (200, anthropic_reply('{"score": 4.5, "feedback": "Great!"}')),
        (200, anthropic_reply('{"score": 4}')),
    ],
)
async def test_anthropic_failures_raise_assessment_error(entry, status, body) -> None:
    judge = AnthropicJudge(judge_settings(), transport=transport_returning(status, body))
    with pytest.raises(AssessmentError):
        await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))


@pytest.mark.asyncio
async def test_transport_error_raises_assessment_error(entry) -> None:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    judge = AnthropicJudge(judge_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(AssessmentError):
        await judge.assess(AssessmentRequest.for_sentence(entry, "It was ephemeral."))


def test_parse_verdict_validates_score_range() -> None:
    for score in (1, 5, 3.0):
        assert 1 <= parse_verdict({"score": score, "feedback": "ok"}, AssessmentMode.DEFINITION).score <= 5
    for score in (0, 6, -1, True, None, "3"):
        with pytest.raises(AssessmentError):
            parse_verdict({"score": score, "feedback": "ok"}, AssessmentMode.DEFINITION)


def test_parse_verdict_requires_improved_for_sentences() -> None:
    with pytest.raises(AssessmentError):
        parse_verdict({"score": 4, "feedback": "ok"}, AssessmentMode.SENTENCE)
    assert parse_verdict({"score": 4, "feedback": "ok", "improved": ""}, AssessmentMode.SENTENCE).improved == ""


def test_parse_verdict_text_rejects_non_objects() -> None:
    with pytest.raises(AssessmentError):
        parse_verdict_text("[1, 2]", AssessmentMode.DEFINITION)


@pytest.mark.asyncio
async def test_http_judge_posts_wire_request(entry) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"score": 5, "feedback": "Spot on."})

    judge = HttpJudge("http://trainer.test/api/assess", transport=httpx.MockTransport(handler))
    verdict = await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))
    assert verdict.score == 5
    assert seen["body"]["type"] == "definition"
    assert seen["body"]["userInput"] == "short-lived"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, body", [(429, {"error": "Rate limit exceeded"}), (500, {"score": 0, "feedback": "x"}), (200, "<html>")])
async def test_http_judge_failures(entry, status, body) -> None:
    judge = HttpJudge("http://trainer.test/api/assess", transport=transport_returning(status, body))
    with pytest.raises(AssessmentError):
        await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))


@pytest.mark.asyncio
async def test_stub_judge_scores_low_for_unrelated_definition(entry) -> None:
    verdict = await StubJudge().assess(AssessmentRequest.for_definition(entry, "happy"))
    assert verdict.score == 1


@pytest.mark.asyncio
async def test_stub_judge_scores_high_for_matching_definition(entry) -> None:
    verdict = await StubJudge().assess(AssessmentRequest.for_definition(entry, "lasting a very short time"))
    assert verdict.score == 5


@pytest.mark.asyncio
async def test_stub_judge_sentence_requires_the_word(entry) -> None:
    judge = StubJudge()
    missing = await judge.assess(AssessmentRequest.for_sentence(entry, "The snow melted quickly."))
    short = await judge.assess(AssessmentRequest.for_sentence(entry, "Fame is ephemeral."))
    assert missing.score == 1
    assert short.score == 3
    assert len(judge.calls) == 2


@pytest.mark.asyncio
async def test_rate_limited_judge_rejects_excess_requests(entry) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=lambda: 0.0)
    judge = RateLimitedJudge(StubJudge(), limiter, "203.0.113.9")
    await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))
    with pytest.raises(AssessmentError, match="Rate limit"):
        await judge.assess(AssessmentRequest.for_definition(entry, "short-lived"))
    other = RateLimitedJudge(StubJudge(), limiter, "198.51.100.1")
    assert (await other.assess(AssessmentRequest.for_definition(entry, "short-lived"))).score >= 1


def test_create_judge_by_backend() -> None:
    assert isinstance(create_judge(judge_settings(backend="stub")), StubJudge)
    assert isinstance(create_judge(judge_settings()), AnthropicJudge)
    assert isinstance(create_judge(judge_settings(api_key="")), AnthropicJudge)
    remote = create_judge(judge_settings(backend="http", url="http://judge.internal/api/assess"))
    assert isinstance(remote, HttpJudge)
    assert remote.url == "http://judge.internal/api/assess"
    assert remote.timeout == 5.0
