import math
import logging
from typing import NamedTuple, Optional

from diff_parser import clean_path
from models import DiffLineType, MappedComment, RawComment, UnifiedDiff

logger = logging.getLogger(__name__)


class CommentMappingError(Exception):
    """Raised when an AI comment cannot be placed on the diff."""


class DiffPosition(NamedTuple):
    position: int
    hunk_text: str


def find_diff_position(diff: UnifiedDiff, path: str, line_number: int) -> Optional[DiffPosition]:
    """
    Translate an absolute file line number into GitHub's diff position.

    Lines are scanned in diff order and the first hit wins: an added/context
    line whose new line number matches, otherwise a deleted line whose old
    line number matches. Returns None when the file is not part of the diff
    or no line of it carries that number.
    """
    file_diff = diff.find_file(path)
    if file_diff is None:
        logger.debug(f"File not in diff: {path}")
        return None

    for hunk in file_diff.hunks:
        for line in hunk.lines:
            if line.line_type in (DiffLineType.ADDED, DiffLineType.CONTEXT):
                if line.new_line_number == line_number:
                    return DiffPosition(line.position, hunk.raw_text)
            elif line.old_line_number == line_number:
                return DiffPosition(line.position, hunk.raw_text)

    logger.debug(f"No diff position for {path}:{line_number}")
    return None


def _coerce_line_number(value) -> int:
    # bool is an int subclass, and strings were never valid positions
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CommentMappingError(f"position is not a number: {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise CommentMappingError(f"position is not a finite line number: {value!r}")
        value = int(value)
    if value < 1:
        raise CommentMappingError(f"position must be >= 1, got {value}")
    return value


def place_comment(diff: UnifiedDiff, comment: RawComment) -> MappedComment:
    """
    Validate one AI comment and anchor it on the diff.
    Raises CommentMappingError with the reason when it has to be dropped.
    """
    if not isinstance(comment.file, str) or not comment.file.strip():
        raise CommentMappingError("missing file path")
    path = clean_path(comment.file)
    if not path:
        raise CommentMappingError(f"invalid file path: {comment.file!r}")

    line_number = _coerce_line_number(comment.position)

    if not isinstance(comment.body, str) or not comment.body.strip():
        raise CommentMappingError("empty comment body")

    if diff.find_file(path) is None:
        raise CommentMappingError(f"file not in diff: {path}")

    found = find_diff_position(diff, path, line_number)
    if found is None:
        raise CommentMappingError(f"line {line_number} is not part of the diff for {path}")

    return MappedComment(
        path=path,
        position=found.position,
        body=comment.body,
        diff_hunk=found.hunk_text,
    )

