"""
Per-event review pipeline: fetch the diff, ask the AI for a review,
publish it. Rate limit exhaustion ends in a notice comment instead of a
failure.
"""

import logging

from agents.review_agent import AIRateLimitError
from models import PipelineState, PullRequestContext
from utils.github_client import GitHubAPIError

logger = logging.getLogger(__name__)

RATE_LIMIT_NOTICE = (
    "⚠️ **PRisma bot:** Rate Limit Notice - PRisma is currently rate limited by the Gemini API. "
    "Your PR will be analyzed when capacity becomes available. Thank you for your patience!"
)
ERROR_NOTICE = (
    "⚠️ **PRisma bot:** An error occurred while analyzing this PR. "
    "Please check the server logs for more details."
)


class PullRequestOrchestrator:

    def __init__(self, github, reviewer, publisher, post_error_notice: bool = True):
        self.github = github
        self.reviewer = reviewer
        self.publisher = publisher
        self.post_error_notice = post_error_notice

    async def process(self, pr: PullRequestContext) -> PipelineState:
        """
        Run one pull request through the pipeline and return the final state.
        Fetch and non rate limit analysis failures are raised to the caller.
        """
        logger.info(f"Processing PR {pr.slug} at {pr.head_sha[:7]}")

        state = PipelineState.FETCHING
        try:
            diff_text = await self.github.fetch_pull_request_diff(pr)
        except GitHubAPIError as e:
            logger.error(f"[{state.value}] Failed to fetch diff for {pr.slug}: {e}")
            raise
        logger.info(f"Diff fetched for {pr.slug}, length: {len(diff_text)}")

        state = PipelineState.ANALYZING
        try:
            analysis = await self.reviewer.analyze(diff_text, pr)
        except AIRateLimitError as e:
            logger.warning(f"[{state.value}] {pr.slug}: {e}; posting rate limit notice")
            await self._notify(pr, RATE_LIMIT_NOTICE)
            return PipelineState.DEGRADED
        except Exception as e:
            logger.error(f"[{state.value}] Analysis failed for {pr.slug}: {e}")
            if self.post_error_notice:
                await self._notify(pr, ERROR_NOTICE)
            raise

        state = PipelineState.PUBLISHING
        report = await self.publisher.publish(pr, analysis)
        if report.degraded:
            logger.warning(f"[{state.value}] {pr.slug}: review published as a single fallback comment")

        logger.info(f"Successfully processed PR {pr.slug}")
        return PipelineState.DONE

    async def _notify(self, pr: PullRequestContext, body: str) -> None:
        try:
            await self.github.post_issue_comment(pr, body)
        except GitHubAPIError as e:
            logger.error(f"Failed to post notice on {pr.slug}: {e}")
