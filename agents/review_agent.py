# agents/review_agent.py
import re
import json
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from google.api_core.exceptions import ResourceExhausted

from agents.prompts import build_review_prompt
from models import DEFAULT_TEST_INSTRUCTIONS, AnalysisResult, PullRequestContext, RawComment

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKER = "429 Too Many Requests"

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*\n(.*?)\n?```", re.DOTALL)
_RETRY_DELAY_PATTERNS = (
    re.compile(r'"retryDelay"\s*:\s*"(\d+(?:\.\d+)?)s"'),
    re.compile(r"retry_delay\s*\{\s*seconds:\s*(\d+)"),
)


class ReviewAgentError(Exception):
    pass


class AIResponseFormatError(ReviewAgentError):
    """The model answered, but not with a usable JSON object."""


class AIRateLimitError(ReviewAgentError):
    """The model kept rate limiting us after every allowed retry."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


@dataclass
class RetryState:
    attempt: int
    delay: float

    def next_delay(self, advised: Optional[float], buffer: float) -> float:
        """Delay before the next attempt; doubles for the one after it."""
        wait = advised + buffer if advised is not None else self.delay
        self.delay = wait * 2
        return wait


# -----------------------------------------------------------
# Response parsing
# -----------------------------------------------------------
def extract_json(text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of the model text. A fenced ```json block is
    tried first, then the outermost {...} span.
    """
    candidates = []
    fenced = _FENCED_JSON_RE.search(text or "")
    if fenced:
        candidates.append(fenced.group(1))
    start = (text or "").find("{")
    end = (text or "").rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise AIResponseFormatError("Failed to parse AI response as JSON")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def normalize_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """Fill defaults and drop malformed entries before anything trusts the data."""
    test_instructions = data.get("testInstructions")
    if not isinstance(test_instructions, str) or not test_instructions.strip():
        test_instructions = DEFAULT_TEST_INSTRUCTIONS

    raw_comments = data.get("comments")
    if not isinstance(raw_comments, list):
        raw_comments = []

    comments = []
    for item in raw_comments:
        if not isinstance(item, dict):
            logger.warning(f"Dropping malformed AI comment: {str(item)[:200]}")
            continue
        comments.append(RawComment.model_validate(item))

    return AnalysisResult(
        summary=_as_text(data.get("summary")),
        commit_id=_as_text(data.get("commitId")),
        test_instructions=test_instructions,
        comments=comments,
    )


# -----------------------------------------------------------
# Rate limit handling
# -----------------------------------------------------------
def is_rate_limit_error(error: Exception) -> bool:
    return isinstance(error, ResourceExhausted) or RATE_LIMIT_MARKER in str(error)


def parse_retry_delay(message: str) -> Optional[float]:
    """Server advised delay in seconds, if the error text carries one."""
    for pattern in _RETRY_DELAY_PATTERNS:
        match = pattern.search(message)
        if match:
            return float(match.group(1))
    return None


class ReviewAgent:
    """
    Asks the model for a review of a PR diff and returns a validated
    AnalysisResult. Rate limited calls are retried with the server advised
    delay, or an exponential backoff when none is given.
    """

    def __init__(self, llm, max_retries: int = 3, initial_delay: float = 60.0,
                 retry_buffer: float = 10.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.llm = llm
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.retry_buffer = retry_buffer
        self.sleep = sleep

    async def analyze(self, diff_text: str, pr: PullRequestContext) -> AnalysisResult:
        prompt = build_review_prompt(diff_text, pr)
        state = RetryState(attempt=0, delay=self.initial_delay)

        while True:
            state.attempt += 1
            try:
                text = await self.llm.generate(prompt)
            except Exception as e:
                if not is_rate_limit_error(e):
                    logger.error(f"AI analysis failed for {pr.slug}: {e}")
                    raise
                retries_left = self.max_retries - (state.attempt - 1)
                if retries_left <= 0:
                    logger.error(f"AI still rate limited for {pr.slug} after {state.attempt} attempts")
                    raise AIRateLimitError(
                        f"AI rate limit exhausted after {state.attempt} attempts: {e}",
                        attempts=state.attempt,
                    ) from e
                delay = state.next_delay(parse_retry_delay(str(e)), self.retry_buffer)
                logger.warning(
                    f"Rate limited by AI service for {pr.slug}. Retrying in {delay:.0f} seconds... "
                    f"({retries_left} retries left)"
                )
                await self.sleep(delay)
                continue

            analysis = normalize_analysis(extract_json(text))
            logger.info(f"AI analysis for {pr.slug}: {len(analysis.comments)} comments")
            return analysis
