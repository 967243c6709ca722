"""Request handlers for the web trainer."""
import logging
from dataclasses import dataclass, field
from typing import List, Set, Tuple

from flask import (
    Blueprint,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from dailyvocab.config import Settings
from dailyvocab.exceptions import AssessmentError, AssessmentInProgress, InvalidInput, InvalidTransition
from dailyvocab.models.assessment_models import AssessmentRequest
from dailyvocab.models.word_models import WordEntry
from dailyvocab.monitoring import rate_limited_requests
from dailyvocab.services.daily_session import DailySession
from dailyvocab.services.judges import Judge, RateLimitedJudge, parse_verdict
from dailyvocab.services.phase_machine import PhaseMachine
from dailyvocab.services.progress_store import FileSlot, ProgressRepository, SessionSlot
from dailyvocab.services.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

bp = Blueprint("trainer", __name__)

UNAVAILABLE_MESSAGE = "Assessment unavailable. Try again."


@dataclass
class AppServices:
    """Process-wide collaborators shared by all requests."""
    settings: Settings
    bank: List[WordEntry]
    judge: Judge
    rate_limiter: SlidingWindowRateLimiter
    pending: Set[Tuple[str, str]] = field(default_factory=set)


def services() -> AppServices:
    return current_app.extensions["dailyvocab"]


def client_id() -> str:
    """Identify the caller for rate limiting.

    Forwarded addresses are applied to `remote_addr` by ProxyFix only when
    TRUSTED_PROXIES is set, so a client cannot pick its own identity.
    """
    return request.remote_addr or "unknown"


def open_session() -> DailySession:
    """Today's session for the browser making the request."""
    svc = services()
    session.permanent = True
    if svc.settings.web.progress_storage == "file":
        slot = FileSlot(svc.settings.paths.progress_file)
    else:
        slot = SessionSlot(session)
    repository = ProgressRepository(
        slot,
        default_count=svc.settings.learning.default_word_count,
        allowed_counts=svc.settings.learning.allowed_word_counts,
    )
    client = client_id()
    judge = RateLimitedJudge(svc.judge, svc.rate_limiter, client)
    machine = PhaseMachine(
        judge,
        max_input_length=svc.settings.learning.max_input_length,
        dismiss_threshold=svc.settings.learning.dismiss_threshold,
        pending=svc.pending,
        owner=client,
    )
    return DailySession(svc.bank, repository, machine=machine)


def back_to(term: str = ""):
    anchor = f"#word-{term}" if term else ""
    return redirect(url_for("trainer.index") + anchor)


@bp.get("/")
def index():
    daily = open_session()
    return render_template(
        "index.html",
        daily=daily,
        bank_size=len(daily.bank),
        allowed_counts=services().settings.learning.allowed_word_counts,
        max_input_length=services().settings.learning.max_input_length,
    )


@bp.post("/words/<term>/definition")
async def submit_definition(term: str):
    daily = open_session()
    try:
        await daily.submit_definition(term, request.form.get("text", ""), already_known=bool(request.form.get("known")))
    except KeyError:
        return "Unknown word", 404
    except (InvalidInput, InvalidTransition, AssessmentInProgress) as e:
        flash(str(e), term)
    return back_to(term)


@bp.post("/words/<term>/start-sentence")
def start_sentence(term: str):
    return _simple_action(term, DailySession.start_sentence)


@bp.post("/words/<term>/sentence")
async def submit_sentence(term: str):
    daily = open_session()
    try:
        await daily.submit_sentence(term, request.form.get("text", ""))
    except KeyError:
        return "Unknown word", 404
    except (InvalidInput, InvalidTransition, AssessmentInProgress) as e:
        flash(str(e), term)
    return back_to(term)


@bp.post("/words/<term>/mark-known")
def mark_known(term: str):
    return _simple_action(term, DailySession.mark_known)


@bp.post("/words/<term>/skip")
def skip_sentence(term: str):
    return _simple_action(term, DailySession.skip_sentence)


def _simple_action(term: str, action):
    daily = open_session()
    try:
        action(daily, term)
    except KeyError:
        return "Unknown word", 404
    except InvalidTransition as e:
        flash(str(e), term)
    return back_to(term)


@bp.post("/settings/word-count")
def set_word_count():
    daily = open_session()
    try:
        daily.set_word_count(int(request.form.get("count", "")))
    except (ValueError, InvalidInput):
        flash("Words per day must be 3, 4 or 5.", "settings")
    return back_to()


@bp.post("/api/assess")
async def assess():
    """JSON assessment boundary: one judge call per request."""
    svc = services()
    limit = svc.rate_limiter.check(client_id())
    if not limit.allowed:
        rate_limited_requests.inc()
        return jsonify({"error": "Rate limit exceeded"}), 429, limit.headers()

    try:
        assessment = AssessmentRequest.from_json(request.get_json(silent=True))
        assessment.validate(svc.settings.learning.max_input_length)
    except InvalidInput as e:
        return jsonify({"error": str(e)}), 400, limit.headers()

    try:
        verdict = await svc.judge.assess(assessment)
        # not every judge validates its own output
        verdict = parse_verdict(verdict.to_json(), assessment.mode)
    except AssessmentError as e:
        logger.error(f"Assessment error: {e}")
        return jsonify({"score": 0, "feedback": UNAVAILABLE_MESSAGE}), 500, limit.headers()
    return jsonify(verdict.to_json()), 200, limit.headers()


@bp.get("/api/today")
def today():
    daily = open_session()
    return jsonify(
        {
            "day": daily.day,
            "count": daily.word_count,
            "words": [word.to_dict() for word in daily.words],
            "states": {word.term: state.to_data() for word, state in daily.states},
        }
    )


@bp.get("/healthz")
def healthz():
    return jsonify({"status": "ok", "words": len(services().bank)})
