"""
Review publishing.

Posts an AnalysisResult onto a pull request: test instructions and summary
as general comments, then every comment that can be anchored on the current
diff as an inline review comment. Inline posts are independent of each
other; when the summary cannot be posted, or the current head/diff cannot
be fetched, everything collapses into one best-effort general comment.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from diff_parser import parse_unified_diff
from diff_position import CommentMappingError, place_comment
from models import (
    AnalysisResult,
    InlineOutcome,
    MappedComment,
    PublishReport,
    PullRequestContext,
    SkippedComment,
    UnifiedDiff,
)
from utils.github_client import GitHubAPIError

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "PRisma AI Review"
HEAD_FETCH_ATTEMPTS = 3


def format_test_instructions(text: str) -> str:
    return f"**Test Instructions:**\n\n{text}"


def format_summary(summary: str) -> str:
    return f"**Review Summary:**\n\n{summary.strip() or DEFAULT_SUMMARY}"


def format_fallback(analysis: AnalysisResult) -> str:
    """Whole review as a single general comment."""
    parts = [format_summary(analysis.summary)]
    if analysis.has_test_instructions:
        parts.append(format_test_instructions(analysis.test_instructions))
    findings = []
    for comment in analysis.comments:
        if not isinstance(comment.body, str) or not comment.body.strip():
            continue
        location = comment.file if isinstance(comment.file, str) and comment.file else "unknown file"
        if comment.position is not None:
            location = f"{location}:{comment.position}"
        findings.append(f"- `{location}`: {comment.body.strip()}")
    if findings:
        parts.append("**Comments:**\n\n" + "\n".join(findings))
    return "\n\n".join(parts)


class ReviewPublisher:

    def __init__(self, github):
        self.github = github

    async def publish(self, pr: PullRequestContext, analysis: AnalysisResult) -> PublishReport:
        report = PublishReport()

        # The head may have moved since the webhook fired
        try:
            head_sha, diff = await self.fetch_current_diff(pr)
        except GitHubAPIError as e:
            logger.error(f"Could not fetch current head/diff for {pr.slug}: {e}")
            await self._post_fallback(pr, analysis, report)
            return report

        if head_sha != pr.head_sha:
            logger.info(f"{pr.slug} moved from {pr.head_sha[:7]} to {head_sha[:7]}; commenting on the new head")

        if analysis.has_test_instructions:
            try:
                await self.github.post_issue_comment(pr, format_test_instructions(analysis.test_instructions))
                report.general_comments_posted += 1
            except GitHubAPIError as e:
                logger.warning(f"Failed to post test instructions on {pr.slug}: {e}")

        try:
            await self.github.post_issue_comment(pr, format_summary(analysis.summary))
            report.general_comments_posted += 1
        except GitHubAPIError as e:
            logger.error(f"Failed to post review summary on {pr.slug}: {e}")
            await self._post_fallback(pr, analysis, report)
            return report

        mapped = self.map_comments(pr, analysis, diff, report)
        report.inline = await self.post_inline_comments(pr, head_sha, mapped)

        logger.info(
            f"Published review on {pr.slug}: {report.general_comments_posted} general, "
            f"{report.inline_posted} inline posted, {report.inline_failed} inline failed, "
            f"{len(report.skipped)} skipped"
        )
        return report

    async def fetch_current_diff(self, pr: PullRequestContext) -> Tuple[str, UnifiedDiff]:
        """
        Head SHA and the diff at that head. The SHA is read again after the
        diff so positions and commit_id always describe the same commit.
        """
        head_sha = await self.github.fetch_head_sha(pr)
        for _ in range(HEAD_FETCH_ATTEMPTS):
            diff_text = await self.github.fetch_pull_request_diff(pr)
            confirmed = await self.github.fetch_head_sha(pr)
            if confirmed == head_sha:
                return head_sha, parse_unified_diff(diff_text)
            logger.info(f"{pr.slug} head moved to {confirmed[:7]} while fetching the diff, fetching again")
            head_sha = confirmed
        raise GitHubAPIError(f"Head of {pr.slug} kept moving while fetching the diff")

    def map_comments(self, pr: PullRequestContext, analysis: AnalysisResult,
                     diff: UnifiedDiff, report: Optional[PublishReport] = None) -> List[MappedComment]:
        mapped = []
        for comment in analysis.comments:
            try:
                mapped.append(place_comment(diff, comment))
            except CommentMappingError as e:
                logger.warning(f"Skipping comment on {pr.slug} ({comment.file!r}:{comment.position!r}): {e}")
                if report is not None:
                    report.skipped.append(SkippedComment(
                        file=comment.file if isinstance(comment.file, str) else None,
                        position=comment.position,
                        reason=str(e),
                    ))
        return mapped

    async def post_inline_comments(self, pr: PullRequestContext, commit_id: str,
                                   comments: List[MappedComment]) -> List[InlineOutcome]:
        """Post every comment concurrently and collect each outcome."""
        results = await asyncio.gather(
            *(self.github.post_review_comment(pr, commit_id, comment) for comment in comments),
            return_exceptions=True,
        )

        outcomes = []
        for comment, result in zip(comments, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Failed to post inline comment on {pr.slug} {comment.path} "
                    f"position {comment.position}: {result}"
                )
                outcomes.append(InlineOutcome(
                    path=comment.path, position=comment.position, posted=False, error=str(result),
                ))
            else:
                outcomes.append(InlineOutcome(path=comment.path, position=comment.position, posted=True))
        return outcomes

    async def _post_fallback(self, pr: PullRequestContext, analysis: AnalysisResult,
                             report: PublishReport) -> None:
        report.degraded = True
        try:
            await self.github.post_issue_comment(pr, format_fallback(analysis))
            report.general_comments_posted += 1
            logger.info(f"Posted fallback review comment on {pr.slug}")
        except GitHubAPIError as e:
            logger.error(f"Fallback review comment failed on {pr.slug}: {e}")
