import re
import logging
from typing import List, Optional, Tuple

from models import DiffLine, DiffLineType, FileDiff, Hunk, UnifiedDiff

logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
GIT_HEADER_RE = re.compile(r"^diff --git (\S+) (\S+)$")

_LINE_TYPES = {
    "+": DiffLineType.ADDED,
    "-": DiffLineType.DELETED,
    " ": DiffLineType.CONTEXT,
}


def clean_path(path: Optional[str]) -> Optional[str]:
    """Strip the `a/` or `b/` prefix git puts in front of diff paths."""
    if path is None:
        return None
    path = path.strip()
    if not path or path == DEV_NULL:
        return None
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def _header_path(line: str) -> str:
    # "--- a/file.py\t2024-01-01 10:00:00" -> "a/file.py"
    return line[4:].split("\t")[0].strip()


class _HunkBuilder:

    def __init__(self, header: str, match, position: int):
        self.header = header
        self.old_start = int(match.group(1))
        self.old_length = int(match.group(2)) if match.group(2) is not None else 1
        self.new_start = int(match.group(3))
        self.new_length = int(match.group(4)) if match.group(4) is not None else 1
        self.section_header = match.group(5).strip()
        self.old_line = self.old_start
        self.new_line = self.new_start
        self.old_seen = 0
        self.new_seen = 0
        self.position = position
        self.raw_lines = [header]
        self.entries: List[Tuple[DiffLineType, Optional[int], Optional[int], int, str]] = []

    @property
    def complete(self) -> bool:
        return self.old_seen >= self.old_length and self.new_seen >= self.new_length

    def add(self, line: str) -> None:
        self.raw_lines.append(line)
        self.position += 1
        if line.startswith("\\"):
            # "\ No newline at end of file" takes a position but is not a line
            return
        line_type = _LINE_TYPES.get(line[:1], DiffLineType.CONTEXT)
        old_no = new_no = None
        if line_type != DiffLineType.ADDED:
            old_no = self.old_line
            self.old_line += 1
            self.old_seen += 1
        if line_type != DiffLineType.DELETED:
            new_no = self.new_line
            self.new_line += 1
            self.new_seen += 1
        self.entries.append((line_type, old_no, new_no, self.position, line[1:]))

    def build(self) -> Hunk:
        raw_text = "\n".join(self.raw_lines)
        lines = [
            DiffLine(
                line_type=line_type,
                old_line_number=old_no,
                new_line_number=new_no,
                position=position,
                content=content,
                hunk_text=raw_text,
            )
            for line_type, old_no, new_no, position, content in self.entries
        ]
        return Hunk(
            old_start=self.old_start,
            old_length=self.old_length,
            new_start=self.new_start,
            new_length=self.new_length,
            section_header=self.section_header,
            raw_text=raw_text,
            lines=lines,
        )


class _FileBuilder:

    def __init__(self, old_path: Optional[str] = None, new_path: Optional[str] = None, from_git: bool = False):
        self.old_path = old_path
        self.new_path = new_path
        self.from_git = from_git
        self.saw_old_header = False
        self.hunks: List[Hunk] = []
        self.current: Optional[_HunkBuilder] = None
        self.position = 0
        self.broken = False

    def start_hunk(self, header: str, match) -> None:
        self.finish_hunk()
        if self.hunks:
            # every hunk header after the first one counts as a diff position
            self.position += 1
        self.current = _HunkBuilder(header, match, self.position)

    def finish_hunk(self) -> None:
        if self.current is not None:
            self.hunks.append(self.current.build())
            self.position = self.current.position
            self.current = None

    def build(self) -> FileDiff:
        self.finish_hunk()
        return FileDiff(
            old_path=clean_path(self.old_path),
            new_path=clean_path(self.new_path),
            hunks=self.hunks,
        )


def _is_body_line(line: str) -> bool:
    return line == "" or line[0] in " +-\\"


def _split_lines(diff_text: str) -> List[str]:
    # only "\n" ends a diff line; form feeds and other separators that
    # str.splitlines() honours are part of the line content
    lines = [line[:-1] if line.endswith("\r") else line for line in diff_text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _opens_plain_file(lines: List[str], index: int) -> bool:
    """A "---" / "+++" / "@@" triple starting at index."""
    return (
        index + 2 < len(lines)
        and lines[index].startswith("--- ")
        and lines[index + 1].startswith("+++ ")
        and lines[index + 2].startswith("@@")
    )


def parse_unified_diff(diff_text: str) -> UnifiedDiff:
    """
    Parse unified diff text (as returned by GitHub's diff media type) into
    files, hunks and lines with old/new line numbers and diff positions.

    Diff positions follow GitHub: the line below a file's first `@@` header
    is position 1 and every following line, later `@@` headers included,
    adds one. A file whose hunks cannot be parsed is logged and left out so
    the other files stay usable.
    """
    files: List[FileDiff] = []
    current: Optional[_FileBuilder] = None

    def finish_file():
        if current is None:
            return
        if current.broken:
            logger.warning(f"Skipping unparseable diff section for {current.new_path or current.old_path}")
            return
        files.append(current.build())

    lines = _split_lines(diff_text or "")
    for index, line in enumerate(lines):
        hunk = current.current if current is not None else None
        # in plain diffs a short hunk is only closed by the next file header
        next_plain_file = current is not None and not current.from_git and _opens_plain_file(lines, index)

        if hunk is not None and not current.broken:
            if not hunk.complete and _is_body_line(line) and not next_plain_file:
                hunk.add(line)
                continue
            if hunk.complete and line.startswith("\\"):
                hunk.add(line)
                continue
            if not hunk.complete and not (next_plain_file or line.startswith("@@") or line.startswith("diff --git ")):
                logger.warning(f"Unexpected line inside hunk '{hunk.header}': {line[:80]!r}")
                current.broken = True
                continue
            current.finish_hunk()

        if line.startswith("diff --git "):
            finish_file()
            match = GIT_HEADER_RE.match(line)
            if match:
                current = _FileBuilder(match.group(1), match.group(2), from_git=True)
            else:
                current = _FileBuilder(from_git=True)
            continue

        if current is not None and current.broken and not next_plain_file:
            continue

        if line.startswith("--- ") and (current is None or current.hunks or current.saw_old_header or current.broken):
            # a plain (non git) diff starts a new file at its "---" header
            finish_file()
            current = _FileBuilder()

        if current is None:
            continue

        if line.startswith("--- "):
            current.old_path = _header_path(line)
            current.saw_old_header = True
        elif line.startswith("+++ "):
            current.new_path = _header_path(line)
        elif line.startswith("rename from "):
            current.old_path = "a/" + line[len("rename from "):].strip()
        elif line.startswith("rename to "):
            current.new_path = "b/" + line[len("rename to "):].strip()
        elif line.startswith("@@"):
            match = HUNK_HEADER_RE.match(line)
            if match is None:
                logger.warning(f"Malformed hunk header: {line[:80]!r}")
                current.broken = True
            else:
                current.start_hunk(line, match)

    finish_file()
    logger.debug(f"Parsed diff: {len(files)} files {[f.path for f in files]}")
    return UnifiedDiff(files=files)
