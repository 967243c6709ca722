"""Configuration settings for the trainer."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = Path(__file__).parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data locations from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
WORD_BANK_PATH = Path(os.getenv("WORD_BANK_PATH", str(PACKAGE_DIR / "data" / "words.json")))
PROGRESS_FILE = Path(os.getenv("PROGRESS_FILE", str(DATA_DIR / "progress.json")))

# Learning settings
ALLOWED_WORD_COUNTS = (3, 4, 5)
DISMISS_THRESHOLD = 4  # "already know it" dismisses a word at this definition score


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        PROGRESS_FILE.parent,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    word_bank: Path = WORD_BANK_PATH
    progress_file: Path = PROGRESS_FILE


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class JudgeSettings:
    """Remote assessment settings."""
    backend: str = os.getenv("JUDGE_BACKEND", "anthropic")
    api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    api_url: str = os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages")
    api_version: str = os.getenv("ANTHROPIC_VERSION", "2023-06-01")
    model: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    url: str = os.getenv("JUDGE_URL", "")
    max_tokens: int = int(os.getenv("JUDGE_MAX_TOKENS", "300"))
    timeout: float = float(os.getenv("JUDGE_TIMEOUT", "30"))


def get_allowed_word_counts() -> tuple[int, ...]:
    """Get the word counts a learner may choose from."""
    return ALLOWED_WORD_COUNTS


@dataclass
class LearningSettings:
    """Daily practice settings."""
    default_word_count: int = int(os.getenv("DEFAULT_WORD_COUNT", "5"))
    allowed_word_counts: tuple[int, ...] = field(default_factory=get_allowed_word_counts)
    max_input_length: int = int(os.getenv("MAX_INPUT_LENGTH", "1000"))
    day_timezone: str = os.getenv("DAY_TIMEZONE", "America/New_York")
    dismiss_threshold: int = DISMISS_THRESHOLD


@dataclass
class RateLimitSettings:
    """Rate limiting settings for assessment requests."""
    max_requests: int = int(os.getenv("RATE_LIMIT_REQUESTS", "20"))
    window_seconds: float = float(os.getenv("RATE_LIMIT_WINDOW", "60"))


@dataclass
class WebSettings:
    """Web server settings."""
    secret_key: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = int(os.getenv("PORT", "5000"))
    metrics_port: Optional[int] = int(os.getenv("METRICS_PORT")) if os.getenv("METRICS_PORT") else None
    # number of reverse proxies whose X-Forwarded-For may be trusted
    trusted_proxies: int = int(os.getenv("TRUSTED_PROXIES", "0"))
    progress_storage: str = os.getenv("PROGRESS_STORAGE", "session")


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_judge_settings() -> JudgeSettings:
    """Get judge settings."""
    return JudgeSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_rate_limit_settings() -> RateLimitSettings:
    """Get rate limit settings."""
    return RateLimitSettings()


def get_web_settings() -> WebSettings:
    """Get web settings."""
    return WebSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    judge: JudgeSettings = field(default_factory=get_judge_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    rate_limit: RateLimitSettings = field(default_factory=get_rate_limit_settings)
    web: WebSettings = field(default_factory=get_web_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.judge.backend not in ("anthropic", "http", "stub"):
            raise ValueError("JUDGE_BACKEND must be 'anthropic', 'http' or 'stub'")

        if self.judge.backend == "http" and not self.judge.url:
            raise ValueError("JUDGE_URL is required for the http judge backend")

        if self.learning.default_word_count not in self.learning.allowed_word_counts:
            raise ValueError("DEFAULT_WORD_COUNT must be one of 3, 4 or 5")

        if self.learning.max_input_length < 1:
            raise ValueError("MAX_INPUT_LENGTH must be positive")

        if self.rate_limit.max_requests < 1:
            raise ValueError("RATE_LIMIT_REQUESTS must be positive")

        if self.rate_limit.window_seconds <= 0:
            raise ValueError("RATE_LIMIT_WINDOW must be positive")

        if self.judge.timeout <= 0:
            raise ValueError("JUDGE_TIMEOUT must be positive")

        if self.web.trusted_proxies < 0:
            raise ValueError("TRUSTED_PROXIES cannot be negative")

        if self.web.progress_storage not in ("session", "file"):
            raise ValueError("PROGRESS_STORAGE must be 'session' or 'file'")


# Create global settings instance
settings = Settings()
settings.validate()
