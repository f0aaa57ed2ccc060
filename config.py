import os
import logging
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once at startup."""

    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    webhook_secret: Optional[str] = None
    allow_unsigned_webhooks: bool = False
    ai_max_retries: int = 3
    ai_initial_retry_delay: float = 60.0
    ai_retry_buffer: float = 10.0
    http_timeout: float = 30.0
    post_error_notice: bool = True
    log_level: str = "INFO"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_api_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
            allow_unsigned_webhooks=_env_bool("ALLOW_UNSIGNED_WEBHOOKS", False),
            ai_max_retries=_env_number("AI_MAX_RETRIES", 3),
            ai_initial_retry_delay=_env_number("AI_INITIAL_RETRY_DELAY", 60.0, float),
            ai_retry_buffer=_env_number("AI_RETRY_BUFFER", 10.0, float),
            http_timeout=_env_number("HTTP_TIMEOUT", 30.0, float),
            post_error_notice=_env_bool("POST_ERROR_NOTICE", True),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            port=_env_number("PORT", 3000),
        )

    def warnings(self) -> List[str]:
        """
        Human readable notes about missing credentials and weakened checks.
        """
        notes = []
        if not self.github_token:
            notes.append("GITHUB_TOKEN is not set: GitHub API calls will be unauthenticated")
        if not self.gemini_api_key:
            notes.append("GEMINI_API_KEY is not set: the review pipeline cannot be started")
        if not self.webhook_secret:
            if self.allow_unsigned_webhooks:
                notes.append(
                    "WEBHOOK_SECRET is not set and ALLOW_UNSIGNED_WEBHOOKS is on: "
                    "running in unauthenticated mode, every webhook is accepted"
                )
            else:
                notes.append(
                    "WEBHOOK_SECRET is not set: every webhook will be rejected "
                    "(set ALLOW_UNSIGNED_WEBHOOKS=true to accept unsigned events)"
                )
        return notes


def configure_logging(level: str = "INFO") -> None:
    level_value = getattr(logging, level.upper(), None)
    if not isinstance(level_value, int):
        raise ValueError(f"Invalid log level: {level}")
    logging.basicConfig(level=level_value, format=LOG_FORMAT)


def log_startup_report(settings: Settings) -> None:
    logger.info("GITHUB_TOKEN: %s", "Set" if settings.github_token else "Not set")
    logger.info("GEMINI_API_KEY: %s", "Set" if settings.gemini_api_key else "Not set")
    logger.info("WEBHOOK_SECRET: %s", "Set" if settings.webhook_secret else "Not set")
    for note in settings.warnings():
        if "rejected" in note:
            logger.error(note)
        else:
            logger.warning(note)
