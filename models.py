from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TEST_INSTRUCTIONS = "No specific test instructions provided."


class PullRequestContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    number: int
    head_sha: str
    title: str = ""
    body: str = ""

    @classmethod
    def from_webhook(cls, payload: Dict[str, Any]) -> "PullRequestContext":
        """
        Build the context from a `pull_request` webhook payload.
        Raises KeyError / TypeError / pydantic.ValidationError when required fields are missing.
        """
        pr = payload["pull_request"]
        repository = payload["repository"]
        return cls(
            owner=repository["owner"]["login"],
            repo=repository["name"],
            number=pr["number"],
            head_sha=pr["head"]["sha"],
            title=pr.get("title") or "",
            body=pr.get("body") or "",
        )

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


# -----------------------------------------------------------
# Unified diff model
# -----------------------------------------------------------
class DiffLineType(str, Enum):
    ADDED = "added"
    DELETED = "deleted"
    CONTEXT = "context"


class DiffLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_type: DiffLineType
    old_line_number: Optional[int] = None
    new_line_number: Optional[int] = None
    position: int
    content: str = ""
    hunk_text: str = ""


class Hunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    old_start: int
    old_length: int
    new_start: int
    new_length: int
    section_header: str = ""
    raw_text: str
    lines: List[DiffLine] = []


class FileDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    old_path: Optional[str] = None
    new_path: Optional[str] = None
    hunks: List[Hunk] = []

    @property
    def path(self) -> Optional[str]:
        return self.new_path or self.old_path

    def matches(self, path: str) -> bool:
        return path in (self.new_path, self.old_path)


class UnifiedDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    files: List[FileDiff] = []

    def find_file(self, path: str) -> Optional[FileDiff]:
        for file_diff in self.files:
            if file_diff.matches(path):
                return file_diff
        return None


# -----------------------------------------------------------
# AI analysis
# -----------------------------------------------------------
class RawComment(BaseModel):
    """One AI suggested comment, exactly as the model sent it."""
    model_config = ConfigDict(extra="ignore")

    file: Optional[Any] = None
    position: Optional[Any] = None
    body: Optional[Any] = None


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ""
    commit_id: str = Field(default="", alias="commitId")
    test_instructions: str = Field(default=DEFAULT_TEST_INSTRUCTIONS, alias="testInstructions")
    comments: List[RawComment] = []

    @property
    def has_test_instructions(self) -> bool:
        text = self.test_instructions.strip()
        return bool(text) and text != DEFAULT_TEST_INSTRUCTIONS


class MappedComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    position: int = Field(ge=1)
    body: str
    diff_hunk: str


# -----------------------------------------------------------
# Publishing / pipeline bookkeeping
# -----------------------------------------------------------
class InlineOutcome(BaseModel):
    path: str
    position: int
    posted: bool
    error: Optional[str] = None


class SkippedComment(BaseModel):
    file: Optional[str] = None
    position: Optional[Any] = None
    reason: str


class PublishReport(BaseModel):
    general_comments_posted: int = 0
    skipped: List[SkippedComment] = []
    inline: List[InlineOutcome] = []
    degraded: bool = False

    @property
    def inline_posted(self) -> int:
        return sum(1 for outcome in self.inline if outcome.posted)

    @property
    def inline_failed(self) -> int:
        return sum(1 for outcome in self.inline if not outcome.posted)


class PipelineState(str, Enum):
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    PUBLISHING = "publishing"
    DONE = "done"
    DEGRADED = "degraded"
