# utils/github_client.py

import logging
from typing import Any, Dict, Optional

import httpx

from models import MappedComment, PullRequestContext

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"


class GitHubAPIError(Exception):
    """A GitHub call failed, either on the wire or with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """
    Thin async wrapper around the GitHub REST endpoints the reviewer needs.
    Built once at startup and shared by every pipeline run; it keeps no
    per-request state.
    """

    def __init__(self, token: Optional[str] = None, base_url: str = GITHUB_API_BASE,
                 timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        # base request headers
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "PRisma-Review-Bot",
        }
        if token:
            self.headers["Authorization"] = f"token {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.HTTPError as e:
                raise GitHubAPIError(f"{method} {path} failed: {e}") from e

        # Raise HTTP errors with full body description
        if resp.is_error:
            raise GitHubAPIError(
                f"GitHub returned {resp.status_code} for {method} {path}: {resp.text[:500]}",
                status_code=resp.status_code,
            )
        return resp

    # -----------------------------------------------------------
    # Pull request reads
    # -----------------------------------------------------------
    async def fetch_pull_request_diff(self, pr: PullRequestContext) -> str:
        """Unified diff of the whole pull request."""
        resp = await self._request(
            "GET",
            f"/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}",
            headers={"Accept": DIFF_MEDIA_TYPE},
        )
        return resp.text

    async def fetch_head_sha(self, pr: PullRequestContext) -> str:
        """HEAD commit SHA of the PR as GitHub sees it right now."""
        resp = await self._request("GET", f"/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}")
        try:
            return resp.json()["head"]["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubAPIError(f"Malformed pull request payload for {pr.slug}: {e}") from e

    # -----------------------------------------------------------
    # Comments
    # -----------------------------------------------------------
    async def post_issue_comment(self, pr: PullRequestContext, body: str) -> Dict[str, Any]:
        """
        Posts a conversation-level comment (not an inline code comment)
        to a pull request.
        """
        resp = await self._request(
            "POST",
            f"/repos/{pr.owner}/{pr.repo}/issues/{pr.number}/comments",
            json={"body": body},
        )
        return resp.json()

    async def post_review_comment(self, pr: PullRequestContext, commit_id: str,
                                  comment: MappedComment) -> Dict[str, Any]:
        """Posts an inline review comment anchored to a diff position."""
        payload = {
            "body": comment.body,
            "commit_id": commit_id,
            "path": comment.path,
            "position": comment.position,
            "diff_hunk": comment.diff_hunk,
        }
        resp = await self._request(
            "POST",
            f"/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}/comments",
            json=payload,
        )
        return resp.json()
