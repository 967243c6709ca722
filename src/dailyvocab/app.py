"""Web application factory and entry point."""
import logging
from datetime import timedelta
from typing import Optional, Sequence

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from dailyvocab.config import Settings, settings as default_settings
from dailyvocab.models.word_models import WordEntry
from dailyvocab.services.judges import Judge, create_judge
from dailyvocab.services.rate_limiter import SlidingWindowRateLimiter
from dailyvocab.services.word_bank import load_word_bank
from dailyvocab.views import AppServices, bp

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Settings] = None,
    judge: Optional[Judge] = None,
    bank: Optional[Sequence[WordEntry]] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> Flask:
    """Build the Flask app. Collaborators default to ones built from settings."""
    config = config or default_settings
    config.validate()

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=config.web.secret_key,
        PERMANENT_SESSION_LIFETIME=timedelta(days=30),
        SESSION_COOKIE_SAMESITE="Lax",
    )
    if config.web.trusted_proxies:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=config.web.trusted_proxies)

    words = list(bank) if bank is not None else load_word_bank(config.paths.word_bank)
    app.extensions["dailyvocab"] = AppServices(
        settings=config,
        bank=words,
        judge=judge or create_judge(config.judge),
        rate_limiter=rate_limiter or SlidingWindowRateLimiter.from_settings(config.rate_limit),
    )
    app.register_blueprint(bp)
    logger.info(f"App created with {len(words)} words and {app.extensions['dailyvocab'].judge.name} judge")
    return app
